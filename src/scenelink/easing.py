"""Easing curves selectable per animation edge."""

import math
from collections.abc import Callable
from dataclasses import dataclass

_BACK = 1.70158
_TAU = 2 * math.pi
_ELASTIC_PERIOD = 0.3 / _TAU
_ELASTIC_SHIFT = math.asin(1.0) * _ELASTIC_PERIOD


def _tpmt(x: float) -> float:
    # 2^-10x rescaled so that tpmt(0) == 1 and tpmt(1) == 0
    return (2 ** (-10 * x) - 0.0009765625) * 1.0009775171065494


def _in_out(ease_in: Callable[[float], float]) -> Callable[[float], float]:
    def ease(t: float) -> float:
        t *= 2
        if t <= 1:
            return ease_in(t) / 2
        return (2 - ease_in(2 - t)) / 2

    return ease


def _out(ease_in: Callable[[float], float]) -> Callable[[float], float]:
    return lambda t: 1 - ease_in(1 - t)


def _poly_in(exponent: float) -> Callable[[float], float]:
    return lambda t: t**exponent


def _sin_in(t: float) -> float:
    return 1 - math.cos(t * math.pi / 2)


def _exp_in(t: float) -> float:
    return _tpmt(1 - t)


def _circle_in(t: float) -> float:
    return 1 - math.sqrt(max(0.0, 1 - t * t))


def _back_in(t: float) -> float:
    return t * t * ((_BACK + 1) * t - _BACK)


def _bounce_out(t: float) -> float:
    b1, b2, b3, b4, b5, b6, b7, b8, b9 = (
        4 / 11,
        6 / 11,
        8 / 11,
        3 / 4,
        9 / 11,
        10 / 11,
        15 / 16,
        21 / 22,
        63 / 64,
    )
    b0 = 1 / b1 / b1
    if t < b1:
        return b0 * t * t
    if t < b3:
        t -= b2
        return b0 * t * t + b4
    if t < b6:
        t -= b5
        return b0 * t * t + b7
    t -= b8
    return b0 * t * t + b9


def _elastic_in(t: float) -> float:
    t -= 1
    return _tpmt(-t) * math.sin((_ELASTIC_SHIFT - t) / _ELASTIC_PERIOD)


@dataclass(frozen=True)
class EasingOption:
    """A named easing curve and the shader call that implements it."""

    title: str
    glsl_call: str
    time_function: Callable[[float], float]

    def __call__(self, t: float) -> float:
        return self.time_function(min(1.0, max(0.0, t)))

    def curve(self, samples: int = 36) -> list[tuple[float, float]]:
        """Sampled (t, eased t) points for previews."""
        steps = max(1, samples)
        return [(i / steps, self(i / steps)) for i in range(steps + 1)]


def _family(name: str, call: str, ease_in: Callable[[float], float]) -> list[EasingOption]:
    return [
        EasingOption(f"Ease {name} In", f"ease{call}In(t)", ease_in),
        EasingOption(f"Ease {name} In Out", f"ease{call}InOut(t)", _in_out(ease_in)),
        EasingOption(f"Ease {name} Out", f"ease{call}Out(t)", _out(ease_in)),
    ]


EASE_LINEAR = EasingOption("Ease Linear", "linear(t)", lambda t: t)

EASING_OPTIONS: list[EasingOption] = [
    EASE_LINEAR,
    *_family("Back", "Back", _back_in),
    *_family("Bounce", "Bounce", _out(_bounce_out)),
    *_family("Circle", "Circle", _circle_in),
    *_family("Sine", "Sine", _sin_in),
    *_family("Cubic", "Cubic", _poly_in(3)),
    *_family("Elastic", "Elastic", _elastic_in),
    *_family("Exp", "Exp", _exp_in),
    *_family("Quad", "Quad", _poly_in(2)),
    *_family("Quart", "Quart", _poly_in(4)),
    *_family("Quint", "Quint", _poly_in(5)),
]


def get_easing(title: str) -> EasingOption:
    """Look up an easing option by its title.

    Raises:
        KeyError: If no option has that title.

    """
    for option in EASING_OPTIONS:
        if option.title == title:
            return option
    raise KeyError(f"Unknown easing '{title}'")
