"""Tunable constants for linking and timing."""

from dataclasses import asdict, dataclass, field
from typing import Any, Self

DEFAULT_WEIGHTS: dict[str, float] = {
    "count": 3.0,
    "data_scope": 2.0,
    "data_tuples": 2.0,
    "class_id": 1.5,
    "comp_id": 1.5,
}


@dataclass
class LinkerConfig:
    """Scoring weights and tolerances used by the linker and timing model."""

    # Weight per comparison axis in the ranking sum
    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    # Minimum weighted sum for an identity link
    link_threshold: float = 5.0

    # Numeric visual values closer than this are considered unchanged
    numeric_tolerance: float = 1.0

    # Axis/legend translation (px) that still counts as unchanged
    decoration_translate_tolerance: float = 3.0

    # Floor for the shared peer duration when sequencing
    min_peer_duration: float = 0.3

    # Shape types that can morph into one another
    morph_compatible: frozenset[str] = frozenset({"Ellipse", "Rectangle"})

    def __post_init__(self) -> None:
        missing = DEFAULT_WEIGHTS.keys() - self.weights.keys()
        if missing:
            raise ValueError(f"Missing weights: {sorted(missing)}")
        negative = [k for k, v in self.weights.items() if v < 0]
        if negative:
            raise ValueError(f"Weights must be non-negative, got negative {sorted(negative)}")
        if not 0 < self.min_peer_duration <= 1:
            raise ValueError(
                f"min_peer_duration must be in (0, 1], got {self.min_peer_duration}",
            )
        self.morph_compatible = frozenset(self.morph_compatible)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        data = asdict(self)
        data["morph_compatible"] = sorted(self.morph_compatible)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create from a dictionary, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "weights" in known:
            known["weights"] = {**DEFAULT_WEIGHTS, **known["weights"]}
        if "morph_compatible" in known:
            known["morph_compatible"] = frozenset(known["morph_compatible"])
        return cls(**known)


DEFAULT_CONFIG = LinkerConfig()
