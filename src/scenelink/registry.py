"""Interfaces to the rendering layer and a dict-backed registry."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from scenelink.data import DataScope, Dataset
from scenelink.easing import EasingOption
from scenelink.effects import AnimationEffect
from scenelink.shapes import Bounds, ShapeProperties
from scenelink.timing import ObjectTiming

logger = logging.getLogger(__name__)


@runtime_checkable
class RenderObject(Protocol):
    """A drawable peer group that interpolates between property sets."""

    visible: bool

    def set_progress(self, time: float) -> None: ...

    def animate_properties(
        self,
        start_props: Sequence[ShapeProperties],
        end_props: Sequence[ShapeProperties],
        start_scopes: Sequence[DataScope],
        end_scopes: Sequence[DataScope],
        index: int,
        timing: ObjectTiming,
    ) -> None: ...

    def animate_properties_with_effect(
        self,
        props: Sequence[ShapeProperties],
        scopes: Sequence[DataScope],
        index: int,
        timing: ObjectTiming,
        effect: AnimationEffect,
        bounds: Bounds | None,
    ) -> None: ...

    def animate_properties_with_merge(
        self,
        start_props: Sequence[ShapeProperties],
        end_props: Sequence[ShapeProperties],
        scopes: Sequence[DataScope],
        index: int,
        timing: ObjectTiming,
    ) -> None: ...

    def static_properties(self, props: Sequence[ShapeProperties], scopes: Sequence[DataScope]) -> None: ...

    def set_easing_option(self, easing: EasingOption) -> None: ...


@runtime_checkable
class Decoration(Protocol):
    """An axis or legend whose start/end property sets the renderer tweens."""

    properties: dict[str, Any]

    def set_visible(self, visible: bool) -> None: ...

    def set_easing_option(self, easing: EasingOption) -> None: ...


class Registry(Protocol):
    """Read-only access to render objects, decorations and datasets.

    Each getter raises ``KeyError`` for an unknown id.
    """

    def get_object(self, object_id: str) -> RenderObject: ...

    def get_decoration(self, decoration_id: str) -> Decoration: ...

    def get_dataset(self, dataset_id: str) -> Dataset: ...


# (source object id, start properties of each linked peer) -> morph object id
ObjectFactory = Callable[[str, Sequence[ShapeProperties]], str]


@dataclass
class InMemoryRegistry:
    """Registry backed by plain dictionaries."""

    objects: dict[str, RenderObject] = field(default_factory=dict)
    decorations: dict[str, Decoration] = field(default_factory=dict)
    datasets: dict[str, Dataset] = field(default_factory=dict)

    def get_object(self, object_id: str) -> RenderObject:
        return self.objects[object_id]

    def get_decoration(self, decoration_id: str) -> Decoration:
        return self.decorations[decoration_id]

    def get_dataset(self, dataset_id: str) -> Dataset:
        return self.datasets[dataset_id]

    def add_object(self, object_id: str, render_object: RenderObject) -> None:
        if object_id in self.objects:
            logger.debug("Replacing render object %s", object_id)
        self.objects[object_id] = render_object

    def add_dataset(self, dataset: Dataset) -> None:
        self.datasets[dataset.dataset_id] = dataset

    def add_decoration(self, decoration_id: str, decoration: Decoration) -> None:
        self.decorations[decoration_id] = decoration
