"""Visual property sets for each supported shape type."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, Self

import numpy as np
import numpy.typing as npt
from skspatial.objects import Points


class ShapeType(StrEnum):
    """Kinds of graphical objects a template can contain."""

    RECTANGLE = "Rectangle"
    ELLIPSE = "Ellipse"
    TEXT = "PointText"
    PATH = "Path"
    COMPOSITE = "Composite"
    GROUP = "Group"


# Composites and groups animate through their children
CONTAINER_TYPES = frozenset({ShapeType.COMPOSITE, ShapeType.GROUP})


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box in canvas coordinates (y grows downward)."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @classmethod
    def from_points(cls, points: npt.ArrayLike) -> Self:
        """Smallest box containing an array-like of shape (n, 2)."""
        coords = np.asarray(Points(points), dtype=float)
        low = coords.min(axis=0)
        high = coords.max(axis=0)
        return cls(left=float(low[0]), top=float(low[1]), right=float(high[0]), bottom=float(high[1]))

    def corners(self) -> Points:
        return Points(
            [
                [self.left, self.top],
                [self.right, self.top],
                [self.right, self.bottom],
                [self.left, self.bottom],
            ],
        )

    def center(self) -> npt.NDArray[np.floating[Any]]:
        """Center point of the box as an array of shape (2,)."""
        return np.asarray(self.corners().centroid())

    def union(self, other: "Bounds | None") -> "Bounds":
        if other is None:
            return self
        return Bounds(
            left=min(self.left, other.left),
            top=min(self.top, other.top),
            right=max(self.right, other.right),
            bottom=max(self.bottom, other.bottom),
        )


@dataclass(kw_only=True)
class ShapeProperties(ABC):
    """Properties shared by every shape variant."""

    shape_type: ClassVar[ShapeType]
    visual_fields: ClassVar[tuple[str, ...]] = ()
    _getters: ClassVar[dict[str, Callable[[Any], Any]]] = {}

    class_id: str | None = None
    comp_id: str | None = None
    opacity: float = 1.0

    @abstractmethod
    def bounds(self) -> Bounds:
        """Bounding box of the shape."""

    def visual_value(self, visual_field: str) -> Any:
        """Rendered value of a visual field such as ``x-position``.

        Raises:
            KeyError: If the field does not apply to this shape type.

        """
        return self._getters[visual_field](self)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = str(self.shape_type)
        return data


@dataclass(kw_only=True)
class BoxProperties(ShapeProperties):
    """Shapes described by a top-left corner and a size."""

    visual_fields: ClassVar[tuple[str, ...]] = (
        "x-position",
        "y-position",
        "width",
        "height",
        "fill-color",
        "stroke-color",
        "stroke-width",
        "opacity",
    )
    _getters: ClassVar[dict[str, Callable[[Any], Any]]] = {
        "x-position": lambda p: p.left + p.width / 2,
        "y-position": lambda p: p.top + p.height / 2,
        "width": lambda p: p.width,
        "height": lambda p: p.height,
        "fill-color": lambda p: p.fill_color,
        "stroke-color": lambda p: p.stroke_color,
        "stroke-width": lambda p: p.stroke_width,
        "opacity": lambda p: p.opacity,
    }

    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0
    fill_color: str | None = None
    stroke_color: str | None = None
    stroke_width: float = 0.0

    def bounds(self) -> Bounds:
        return Bounds(self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(kw_only=True)
class RectangleProperties(BoxProperties):
    shape_type: ClassVar[ShapeType] = ShapeType.RECTANGLE


@dataclass(kw_only=True)
class EllipseProperties(BoxProperties):
    shape_type: ClassVar[ShapeType] = ShapeType.ELLIPSE


@dataclass(kw_only=True)
class TextProperties(BoxProperties):
    shape_type: ClassVar[ShapeType] = ShapeType.TEXT
    visual_fields: ClassVar[tuple[str, ...]] = (
        "x-position",
        "y-position",
        "content",
        "size",
        "fill-color",
        "stroke-color",
        "stroke-width",
        "opacity",
    )
    _getters: ClassVar[dict[str, Callable[[Any], Any]]] = {
        **BoxProperties._getters,
        "content": lambda p: p.content,
        "size": lambda p: p.size,
    }

    content: str = ""
    size: float = 12.0


@dataclass(kw_only=True)
class PathProperties(ShapeProperties):
    shape_type: ClassVar[ShapeType] = ShapeType.PATH
    visual_fields: ClassVar[tuple[str, ...]] = ("stroke-color", "stroke-width", "opacity")
    _getters: ClassVar[dict[str, Callable[[Any], Any]]] = {
        "stroke-color": lambda p: p.stroke_color,
        "stroke-width": lambda p: p.stroke_width,
        "opacity": lambda p: p.opacity,
    }

    segments: list[tuple[float, float]] = field(default_factory=list)
    stroke_color: str | None = None
    stroke_width: float = 1.0
    fill_color: str | None = None

    def bounds(self) -> Bounds:
        if not self.segments:
            return Bounds(0.0, 0.0, 0.0, 0.0)
        return Bounds.from_points(self.segments)


@dataclass(kw_only=True)
class CompositeProperties(ShapeProperties):
    """A repeated or partitioned container of child shapes."""

    shape_type: ClassVar[ShapeType] = ShapeType.COMPOSITE

    grid_bounds: Bounds = field(default_factory=lambda: Bounds(0.0, 0.0, 0.0, 0.0))
    layout_type: str | None = None

    def bounds(self) -> Bounds:
        return self.grid_bounds


@dataclass(kw_only=True)
class GroupProperties(CompositeProperties):
    shape_type: ClassVar[ShapeType] = ShapeType.GROUP


PROPERTY_TYPES: dict[str, type[ShapeProperties]] = {
    cls.shape_type: cls
    for cls in (
        RectangleProperties,
        EllipseProperties,
        TextProperties,
        PathProperties,
        CompositeProperties,
        GroupProperties,
    )
}


def properties_from_dict(data: Mapping[str, Any]) -> ShapeProperties:
    """Build a property variant from a mapping with a ``type`` key.

    Raises:
        ValueError: If the type is not a supported shape.

    """
    values = dict(data)
    shape_type = values.pop("type", None)
    if shape_type not in PROPERTY_TYPES:
        raise ValueError(f"Unsupported shape type '{shape_type}'")
    cls = PROPERTY_TYPES[shape_type]
    if "grid_bounds" in values and not isinstance(values["grid_bounds"], Bounds):
        values["grid_bounds"] = Bounds(**values["grid_bounds"])
    if "segments" in values:
        values["segments"] = [tuple(s) for s in values["segments"]]
    return cls(**values)


def visual_fields_for(shape_type: str) -> tuple[str, ...]:
    """Visual fields tracked for a shape type; containers have none."""
    cls = PROPERTY_TYPES.get(shape_type)
    return cls.visual_fields if cls is not None else ()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, bool)


def values_match(start: Any, end: Any, tolerance: float = 1.0) -> bool:
    """Numbers match within ``tolerance``; everything else must be equal."""
    if _is_number(start) and _is_number(end):
        return abs(float(start) - float(end)) < tolerance
    return start == end


def property_list_from_diffs(
    start_props: Sequence[ShapeProperties],
    end_props: Sequence[ShapeProperties],
    shape_type: str,
    tolerance: float = 1.0,
) -> list[str]:
    """Visual fields whose value changes between any matched pair.

    Pairs are compared positionally. Fields are returned in the shape type's
    canonical field order.
    """
    prop_list = []
    for visual_field in visual_fields_for(shape_type):
        for start, end in zip(start_props, end_props, strict=False):
            try:
                changed = not values_match(
                    start.visual_value(visual_field),
                    end.visual_value(visual_field),
                    tolerance,
                )
            except KeyError:
                # Cross-shape pairs may lack a field on one side
                changed = True
            if changed:
                prop_list.append(visual_field)
                break
    return prop_list


def bounds_from_properties(
    props: Iterable[ShapeProperties],
    bounds: Bounds | None = None,
) -> Bounds | None:
    """Union of the bounds of every property set, grown from ``bounds``."""
    for prop in props:
        bounds = prop.bounds().union(bounds)
    return bounds
