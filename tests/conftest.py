"""Shared fixtures: a small sales dataset, class builders and fake renderers."""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from scenelink import DataScope, Dataset, InMemoryRegistry, ObjectClass, Template
from scenelink.shapes import (
    CompositeProperties,
    EllipseProperties,
    RectangleProperties,
    ShapeProperties,
)

SALES_ROWS = [
    {"Row_ID": 0, "region": "East", "product": "A", "revenue": 10, "units": 1},
    {"Row_ID": 1, "region": "East", "product": "B", "revenue": 20, "units": 2},
    {"Row_ID": 2, "region": "West", "product": "A", "revenue": 30, "units": 3},
    {"Row_ID": 3, "region": "West", "product": "B", "revenue": 40, "units": 4},
    {"Row_ID": 4, "region": "North", "product": "A", "revenue": 50, "units": 5},
]

SHAPES: dict[str, type[ShapeProperties]] = {
    "Rectangle": RectangleProperties,
    "Ellipse": EllipseProperties,
    "Composite": CompositeProperties,
}


class FakeRenderObject:
    """Records what the generator pushes to it."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.visible = True
        self.time: float | None = None
        self.easing = None

    def set_progress(self, time: float) -> None:
        self.time = time

    def animate_properties(self, *args: Any) -> None:
        self.calls.append(("linked", args))

    def animate_properties_with_effect(self, *args: Any) -> None:
        self.calls.append(("effect", args))

    def animate_properties_with_merge(self, *args: Any) -> None:
        self.calls.append(("merge", args))

    def static_properties(self, props: Any, scopes: Any) -> None:
        self.calls.append(("static", (props, scopes)))

    def set_easing_option(self, easing: Any) -> None:
        self.easing = easing


class FakeDecoration:
    """Records visibility, properties and easing pushed to a decoration."""

    def __init__(self) -> None:
        self.properties: dict[str, Any] = {}
        self.visible = True
        self.easing = None

    def set_visible(self, visible: bool) -> None:
        self.visible = visible

    def set_easing_option(self, easing: Any) -> None:
        self.easing = easing


@pytest.fixture
def sales() -> Dataset:
    """Five rows of sales data, one per Row_ID."""
    return Dataset(SALES_ROWS, dataset_name="sales", dataset_id="sales-0")


@pytest.fixture
def make_class(sales: Dataset) -> Callable[..., ObjectClass]:
    """Build an object class with one instance per filter mapping.

    Instance ``i`` is drawn at ``left = 10 * i`` unless ``offset`` shifts it.
    """

    def build(
        class_id: str,
        filters: Sequence[Mapping[str, Any]],
        shape: str = "Rectangle",
        offset: float = 0.0,
        dataset: Dataset | None = None,
        **props: Any,
    ) -> ObjectClass:
        cls = SHAPES[shape]
        id_list = [f"{class_id}-{i}" for i in range(len(filters))]
        property_map: dict[str, ShapeProperties] = {}
        for i, object_id in enumerate(id_list):
            if cls is CompositeProperties:
                property_map[object_id] = cls(class_id=class_id, **props)
            else:
                values = {"left": 10.0 * i + offset, "top": 0.0, "width": 8.0, "height": 20.0, **props}
                property_map[object_id] = cls(class_id=class_id, **values)
        data_scope_map = {
            object_id: DataScope(f, dataset=dataset if dataset is not None else sales)
            for object_id, f in zip(id_list, filters, strict=True)
        }
        return ObjectClass(class_id, id_list, property_map, data_scope_map)

    return build


@pytest.fixture
def row_filters() -> Callable[..., list[dict[str, Any]]]:
    """Filters selecting single rows by Row_ID."""

    def build(*row_ids: int) -> list[dict[str, Any]]:
        return [{"Row_ID": i} for i in row_ids]

    return build


@pytest.fixture
def make_registry(sales: Dataset) -> Callable[..., InMemoryRegistry]:
    """Registry with a fake render object for every class in the templates."""

    def build(*templates: Template, extra_objects: Sequence[str] = ()) -> InMemoryRegistry:
        registry = InMemoryRegistry()
        registry.add_dataset(sales)
        for template in templates:
            for class_id in template:
                registry.add_object(template.object_id(class_id), FakeRenderObject())
            for fields in template.decoration_map.values():
                for specs in fields.values():
                    for spec in specs:
                        registry.add_decoration(spec.decoration_id, FakeDecoration())
        for object_id in extra_objects:
            registry.add_object(object_id, FakeRenderObject())
        return registry

    return build
