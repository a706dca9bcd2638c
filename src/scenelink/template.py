"""Board templates: typed, data-bound object classes plus their decorations."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

import numpy as np
import numpy.typing as npt

from scenelink.data import DataScope
from scenelink.errors import MalformedTemplate
from scenelink.shapes import Bounds, ShapeProperties, bounds_from_properties

if TYPE_CHECKING:
    from collections.abc import ItemsView

logger = logging.getLogger(__name__)

AXIS_TYPES = frozenset({"CategoricalAxis", "NumericalAxis"})


@dataclass
class DecorationSpec:
    """Resolved description of one axis or legend attached to an object class."""

    decoration_id: str
    type: str
    binding_id: str | None = None
    title: str = ""
    orientation: str | None = None
    alignment: str | None = None
    flipped: bool = False
    show_all: bool = False
    translate: tuple[float, float] = (0.0, 0.0)
    domain: tuple[Any, ...] = ()
    range: tuple[float, ...] = ()

    @property
    def axis_or_legend(self) -> str:
        return "Axis" if self.type in AXIS_TYPES else "Legend"

    def properties(self) -> dict[str, Any]:
        """Property set handed to the decoration renderer."""
        return {
            "title": self.title,
            "orientation": self.orientation,
            "alignment": self.alignment,
            "flipped": self.flipped,
            "showAll": self.show_all,
            "translate": tuple(self.translate),
            "domain": tuple(self.domain),
            "range": tuple(self.range),
        }


def decorations_animating(
    start: DecorationSpec,
    end: DecorationSpec,
    translate_tolerance: float = 3.0,
) -> bool:
    """True if an axis/legend visibly changes between two specs."""
    return (
        start.title != end.title
        or start.orientation != end.orientation
        or start.alignment != end.alignment
        or start.flipped != end.flipped
        or start.show_all != end.show_all
        or abs(start.translate[0] - end.translate[0]) > translate_tolerance
        or abs(start.translate[1] - end.translate[1]) > translate_tolerance
        or tuple(start.domain) != tuple(end.domain)
        or tuple(start.range) != tuple(end.range)
    )


@dataclass
class ObjectClass:
    """A peer group of same-typed graphical instances in one template."""

    class_id: str
    id_list: list[str] = field(default_factory=list)
    property_map: dict[str, ShapeProperties] = field(default_factory=dict)
    data_scope_map: dict[str, DataScope] = field(default_factory=dict)

    @property
    def shape_type(self) -> str | None:
        """Shape type of the first instance, or None for an empty class."""
        for object_id in self.id_list:
            if object_id in self.property_map:
                return str(self.property_map[object_id].shape_type)
        return None

    @property
    def is_well_formed(self) -> bool:
        """Every listed id has both properties and a data scope."""
        return bool(self.id_list) and all(
            i in self.property_map and i in self.data_scope_map for i in self.id_list
        )

    def __len__(self) -> int:
        return len(self.id_list)

    def props(self) -> list[ShapeProperties]:
        return [self.property_map[i] for i in self.id_list if i in self.property_map]

    def scopes(self) -> list[DataScope]:
        return [self.data_scope_map[i] for i in self.id_list if i in self.data_scope_map]

    def bounds(self) -> Bounds | None:
        return bounds_from_properties(self.props())


class Template:
    """One board: object classes keyed by class id, with parents and decorations.

    Supports dict-like read access: ``template["Rectangle-1"]`` returns an
    :class:`ObjectClass` view, ``"Rectangle-1" in template`` tests membership
    and iteration yields class ids in insertion order.
    """

    def __init__(
        self,
        id_map: Mapping[str, list[str]],
        property_map: Mapping[str, Mapping[str, ShapeProperties]],
        data_scope_map: Mapping[str, Mapping[str, DataScope]],
        object_map: Mapping[str, str] | None = None,
        parent_map: Mapping[str, str] | None = None,
        decoration_map: Mapping[str, Mapping[str, list[DecorationSpec]]] | None = None,
        name: str = "Template",
    ) -> None:
        """Initialize a template.

        Args:
            id_map: class id -> ordered instance ids.
            property_map: class id -> instance id -> visual properties.
            data_scope_map: class id -> instance id -> data scope.
            object_map: class id -> render object id. Defaults to the class id.
            parent_map: child class id -> parent class id.
            decoration_map: class id -> visual field -> decoration specs.
            name: Display name.

        """
        self.name = name
        self.id_map = {k: list(v) for k, v in id_map.items()}
        self.property_map = {k: dict(v) for k, v in property_map.items()}
        self.data_scope_map = {k: dict(v) for k, v in data_scope_map.items()}
        self.object_map = {k: k for k in self.id_map}
        self.object_map.update(object_map or {})
        self.parent_map = dict(parent_map or {})
        self.decoration_map = {k: dict(v) for k, v in (decoration_map or {}).items()}
        self.bounds = self._compute_bounds()

    @classmethod
    def from_classes(
        cls,
        classes: Iterable[ObjectClass],
        object_map: Mapping[str, str] | None = None,
        parent_map: Mapping[str, str] | None = None,
        decoration_map: Mapping[str, Mapping[str, list[DecorationSpec]]] | None = None,
        name: str = "Template",
    ) -> Self:
        """Build a template from ObjectClass instances."""
        classes = list(classes)
        return cls(
            {c.class_id: c.id_list for c in classes},
            {c.class_id: c.property_map for c in classes},
            {c.class_id: c.data_scope_map for c in classes},
            object_map=object_map,
            parent_map=parent_map,
            decoration_map=decoration_map,
            name=name,
        )

    def __repr__(self) -> str:
        return f"Template({self.name!r}, classes={list(self.id_map)})"

    def __getitem__(self, class_id: str) -> ObjectClass:
        """Get an object class view: template['Rectangle-1']"""
        if class_id not in self.id_map:
            raise KeyError(f"Class '{class_id}' does not exist in template '{self.name}'")
        return ObjectClass(
            class_id=class_id,
            id_list=self.id_map[class_id],
            property_map=self.property_map.get(class_id, {}),
            data_scope_map=self.data_scope_map.get(class_id, {}),
        )

    def __contains__(self, class_id: object) -> bool:
        return class_id in self.id_map

    def __iter__(self) -> Iterator[str]:
        return iter(self.id_map)

    def __len__(self) -> int:
        return len(self.id_map)

    def items(self) -> "ItemsView[str, list[str]]":
        """Return class id -> instance id list pairs."""
        return self.id_map.items()

    def classes(self) -> list[ObjectClass]:
        return [self[class_id] for class_id in self.id_map]

    def object_id(self, class_id: str) -> str:
        return self.object_map.get(class_id, class_id)

    def parent_of(self, class_id: str) -> str | None:
        return self.parent_map.get(class_id)

    def _compute_bounds(self) -> Bounds | None:
        bounds = None
        for class_id in self.id_map:
            bounds = bounds_from_properties(self.property_map.get(class_id, {}).values(), bounds)
        return bounds

    @property
    def center(self) -> npt.NDArray[np.floating[Any]] | None:
        """Center of the template bounds, or None for an empty template."""
        return self.bounds.center() if self.bounds is not None else None

    def validate(self) -> None:
        """Check that every listed id has properties and a data scope.

        Linking never calls this; malformed classes simply go unmatched.

        Raises:
            MalformedTemplate: On the first class with missing entries.

        """
        for object_class in self.classes():
            if not object_class.is_well_formed:
                raise MalformedTemplate(
                    f"Class '{object_class.class_id}' in template '{self.name}' "
                    "has empty or incomplete id, property or data scope entries",
                )
        for child, parent in self.parent_map.items():
            if child not in self.id_map or parent not in self.id_map:
                logger.warning("Parent map entry %s -> %s references unknown class", child, parent)
