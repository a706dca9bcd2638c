"""Preset trajectories for objects that enter or exit without a morph target."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from scenelink.shapes import Bounds, ShapeProperties

# A default property is either a constant or a function of the instance's
# properties and the template bounds
PropertyDefault = float | Callable[[Any, Bounds | None], float]


@dataclass(frozen=True)
class AnimationEffect:
    """Named enter/exit preset.

    ``default_properties`` give the values an entering shape starts from, or
    an exiting shape ends at.
    """

    type: Literal["enter", "exit"]
    title: str
    direction: str = ""
    glsl_keys: tuple[str, ...] = ()
    glsl_time_props: tuple[str, ...] = ()
    default_properties: dict[str, PropertyDefault] = field(default_factory=dict)

    def resolve(self, props: ShapeProperties, bounds: Bounds | None = None) -> dict[str, float]:
        """Evaluate the default properties for one instance."""
        return {
            name: value(props, bounds) if callable(value) else value
            for name, value in self.default_properties.items()
        }


def _keep(attr: str) -> Callable[[Any, Bounds | None], float]:
    return lambda p, b: getattr(p, attr, 0.0)


def _edge(side: str, offset: Callable[[Any], float]) -> Callable[[Any, Bounds | None], float]:
    def value(p: Any, b: Bounds | None) -> float:
        if b is None:
            return getattr(p, "left" if side in {"left", "right"} else "top", 0.0)
        return getattr(b, side) - offset(p)

    return value


FADE_IN = AnimationEffect("enter", "Fade In", "", ("a_opacity",), ("opacity",), {"opacity": 0.0})
FADE_OUT = AnimationEffect("exit", "Fade Out", "", ("b_opacity",), ("opacity",), {"opacity": 0.0})
SCALE_IN = AnimationEffect(
    "enter", "Scale In", "", ("a_scale",), ("width", "height"), {"width": 0.0, "height": 0.0}
)
SCALE_OUT = AnimationEffect(
    "exit", "Scale Out", "", ("b_scale",), ("width", "height"), {"width": 0.0, "height": 0.0}
)
FADE_SCALE_IN = AnimationEffect(
    "enter",
    "Scale & Fade",
    "",
    ("a_opacity", "a_scale"),
    ("opacity", "width", "height"),
    {"width": 0.0, "height": 0.0, "opacity": 0.0},
)
FADE_SCALE_OUT = AnimationEffect(
    "exit",
    "Scale & Fade",
    "",
    ("b_opacity", "b_scale"),
    ("opacity", "width", "height"),
    {"width": 0.0, "height": 0.0, "opacity": 0.0},
)
WIPE_LEFT_IN = AnimationEffect(
    "enter",
    "Wipe → from Left",
    "→ from Left",
    ("a_scale", "a_position"),
    ("width",),
    {"height": _keep("height"), "width": 0.0, "left": _keep("left"), "top": _keep("top")},
)
WIPE_LEFT_OUT = AnimationEffect(
    "exit",
    "Wipe → from Left",
    "→ from Left",
    ("b_scale", "b_position"),
    ("width",),
    {"height": _keep("height"), "width": 0.0, "left": _keep("left"), "top": _keep("top")},
)
MOVE_LEFT_IN = AnimationEffect(
    "enter",
    "Move → from Left",
    "→ from Left",
    ("a_position",),
    ("x-position",),
    {"left": _edge("left", lambda p: getattr(p, "width", 0.0)), "top": _keep("top")},
)
MOVE_RIGHT_OUT = AnimationEffect(
    "exit",
    "Move → to Right",
    "→ to Right",
    ("b_position",),
    ("x-position",),
    {"left": _edge("right", lambda p: 0.0), "top": _keep("top")},
)
MOVE_BOTTOM_IN = AnimationEffect(
    "enter",
    "Move ↑ from Bottom",
    "↑ from Bottom",
    ("a_position",),
    ("y-position",),
    {"left": _keep("left"), "top": _edge("bottom", lambda p: 0.0)},
)
MOVE_TOP_OUT = AnimationEffect(
    "exit",
    "Move ↑ to Top",
    "↑ to Top",
    ("b_position",),
    ("y-position",),
    {"left": _keep("left"), "top": _edge("top", lambda p: getattr(p, "height", 0.0))},
)

EFFECTS: dict[str, AnimationEffect] = {
    "FADE_IN": FADE_IN,
    "FADE_OUT": FADE_OUT,
    "SCALE_IN": SCALE_IN,
    "SCALE_OUT": SCALE_OUT,
    "FADE_SCALE_IN": FADE_SCALE_IN,
    "FADE_SCALE_OUT": FADE_SCALE_OUT,
    "WIPE_LEFT_IN": WIPE_LEFT_IN,
    "WIPE_LEFT_OUT": WIPE_LEFT_OUT,
    "MOVE_LEFT_IN": MOVE_LEFT_IN,
    "MOVE_RIGHT_OUT": MOVE_RIGHT_OUT,
    "MOVE_BOTTOM_IN": MOVE_BOTTOM_IN,
    "MOVE_TOP_OUT": MOVE_TOP_OUT,
}


def effects_for(link_type: str) -> list[AnimationEffect]:
    """Effects applicable to ``enter`` or ``exit`` edges."""
    return [e for e in EFFECTS.values() if e.type == link_type]
