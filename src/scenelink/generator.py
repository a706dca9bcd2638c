"""Orchestrates linking, timing edits and pushing edges to the renderer."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from scenelink.comparator import compare_classes
from scenelink.config import DEFAULT_CONFIG, LinkerConfig
from scenelink.data import DataScope, Dataset, sequenceable_fields
from scenelink.easing import EasingOption, get_easing
from scenelink.edges import (
    DecorationEdge,
    EnterEdge,
    ExitEdge,
    LinkedEdge,
    LinkType,
    ObjectMap,
)
from scenelink.effects import EFFECTS, AnimationEffect
from scenelink.errors import LookupFailure
from scenelink.linker import AnyEdge, ObjectLinker
from scenelink.matching import MatchingStrategy
from scenelink.registry import ObjectFactory, Registry, RenderObject
from scenelink.scales import LinearScale
from scenelink.shapes import Bounds, ShapeProperties, ShapeType, bounds_from_properties
from scenelink.template import Template
from scenelink.timing import DecorationTiming, ObjectTiming, PeerGroup, TimingGraph

logger = logging.getLogger(__name__)

TIMING_KEYS = ("start", "end", "prop-start", "prop-end")


@dataclass
class PropertyKey:
    name: str
    start_key: float
    end_key: float


@dataclass
class PeerInfo:
    """Peer sequencing state shown next to an object layer."""

    peer_field: str | None
    sequence_options: list[str]
    scale: LinearScale
    groups: list[PeerGroup]


@dataclass
class LayerNode:
    """One row of the timeline tree."""

    id: str
    type: str
    label: str
    counts: tuple[int, int]
    timing: ObjectTiming | DecorationTiming
    link_type: LinkType
    is_animating: bool
    properties: list[PropertyKey] = field(default_factory=list)
    peers: PeerInfo | None = None
    child_nodes: list["LayerNode"] = field(default_factory=list)
    linked_by: list[str] = field(default_factory=list)
    effect: AnimationEffect | None = None

    @property
    def child_expanded(self) -> bool:
        return bool(self.child_nodes)


def _display_type(props: ShapeProperties) -> str:
    if props.shape_type is ShapeType.COMPOSITE:
        return "Partition" if getattr(props, "layout_type", None) == "Stack Layout" else "Repeat"
    return str(props.shape_type)


class AnimationGenerator:
    """Links a start and an end template and exposes the editing API.

    Construction runs the linker once. Every mutator runs to completion and
    then pushes the edges to the render objects with :meth:`update_objects`.
    Mutators that cannot find their target log a warning and change nothing.

    Args:
        start: Template shown at time 0.
        end: Template shown at time 1.
        registry: Source of render objects, decorations and datasets.
        config: Scoring weights and tolerances.
        strategy: Matching strategy; greedy by default.
        object_factory: Creates the render object that morphs between two
            different shape types when a cross-shape link is made.

    """

    def __init__(
        self,
        start: Template,
        end: Template,
        registry: Registry,
        *,
        config: LinkerConfig | None = None,
        strategy: MatchingStrategy | None = None,
        object_factory: ObjectFactory | None = None,
    ) -> None:
        self.start = start
        self.end = end
        self.registry = registry
        self.config = config if config is not None else DEFAULT_CONFIG
        self.object_factory = object_factory
        self.graph = TimingGraph()
        self.linker = ObjectLinker(start, end, self.config, strategy, self.graph)
        self.time = 0.0
        self.relink()

    def __repr__(self) -> str:
        return (
            f"AnimationGenerator({self.start.name!r} -> {self.end.name!r}, enter={len(self.enter)}, "
            f"linked={len(self.linked)}, exit={len(self.exit)})"
        )

    @property
    def enter(self) -> list[EnterEdge]:
        return self.linker.enter

    @property
    def linked(self) -> list[LinkedEdge]:
        return self.linker.linked

    @property
    def exit(self) -> list[ExitEdge]:
        return self.linker.exit

    @property
    def decorations(self) -> list[DecorationEdge]:
        return self.linker.decorations

    def relink(self) -> None:
        """Discard all edges and timings and run the linker again."""
        self.linker.link()
        logger.info(
            "Linked %s -> %s: %d enter, %d linked, %d exit, %d decorations",
            self.start.name,
            self.end.name,
            len(self.enter),
            len(self.linked),
            len(self.exit),
            len(self.decorations),
        )

    # Lookups

    def _edges(self, link_type: LinkType | str) -> list[AnyEdge]:
        try:
            return self.linker.edges(LinkType(link_type))
        except ValueError as e:
            raise LookupFailure("link type", str(link_type)) from e

    def _find_edge(self, object_id: str, link_type: LinkType | str) -> AnyEdge:
        candidates = [e for e in self._edges(link_type) if e.object_map.object == object_id]
        if not candidates:
            raise LookupFailure("animation", object_id, str(link_type))
        # Prefer the edge the class was matched by over a partial remainder
        return min(candidates, key=lambda e: e.is_remainder)

    def _find_decoration_edge(
        self, decoration_id: str, link_type: LinkType | str | None = None
    ) -> DecorationEdge:
        for edge in self.decorations:
            if edge.decoration_id == decoration_id and (link_type is None or edge.link_type == link_type):
                return edge
        raise LookupFailure("decoration animation", decoration_id, str(link_type) if link_type else None)

    def _side(self, link_type: LinkType) -> tuple[Template, str]:
        return (self.end, "end") if link_type is LinkType.ENTER else (self.start, "start")

    def _render_object(self, object_id: str) -> RenderObject | None:
        try:
            return self.registry.get_object(object_id)
        except KeyError:
            logger.warning("No render object found for '%s'", object_id)
            return None

    def _dataset(self, scopes: Sequence[DataScope]) -> Dataset | None:
        if not scopes:
            return None
        try:
            return self.registry.get_dataset(scopes[0].dataset_id)
        except KeyError:
            return scopes[0].dataset

    def get_timing_for_object(self, object_id: str) -> ObjectTiming | None:
        for edges in (self.enter, self.linked, self.exit):
            for edge in edges:
                if edge.object_map.object == object_id:
                    return edge.timing
        return None

    def get_timing_for_decoration(self, decoration_id: str) -> DecorationTiming | None:
        for link_type in (LinkType.ENTER, LinkType.LINKED, LinkType.EXIT):
            for edge in self.decorations:
                if edge.link_type is link_type and edge.decoration_id == decoration_id:
                    return edge.timing
        return None

    def get_object_ids(self) -> list[str]:
        ids = [e.object_map.object for e in (*self.enter, *self.exit, *self.linked)]
        return list(dict.fromkeys(ids))

    def get_decoration_ids(self) -> list[str]:
        return list(dict.fromkeys(e.decoration_id for e in self.decorations))

    def get_bounds(self) -> Bounds | None:
        """Union of every start and end instance taking part in the transition."""
        bounds = None
        for edge in self.enter:
            end_props = self.end.property_map.get(edge.object_map.end, {})
            bounds = bounds_from_properties(end_props.values(), bounds)
        for edge in self.linked:
            bounds = bounds_from_properties(
                self.start.property_map.get(edge.object_map.start, {}).values(), bounds
            )
            end_props = self.end.property_map.get(edge.object_map.end, {})
            bounds = bounds_from_properties(end_props.values(), bounds)
        for edge in self.exit:
            bounds = bounds_from_properties(
                self.start.property_map.get(edge.object_map.start, {}).values(), bounds
            )
        return bounds

    # Rendering

    def _merge_fan(
        self, edge: LinkedEdge
    ) -> tuple[list[ShapeProperties], list[ShapeProperties], list[DataScope]]:
        start_props = self.start.property_map[edge.object_map.start]
        end_props = self.end.property_map[edge.object_map.end]
        start_scopes = self.start.data_scope_map[edge.object_map.start]
        end_scopes = self.end.data_scope_map[edge.object_map.end]
        fan_start, fan_end, scopes = [], [], []
        for link in edge.id_list:
            if len(link.start) == 1:
                # Partition: one start shape splits into each end shape
                fan_start += [start_props[link.start[0]]] * len(link.end)
                fan_end += [end_props[i] for i in link.end]
                scopes += [end_scopes[i] for i in link.end]
            else:
                fan_start += [start_props[i] for i in link.start]
                fan_end += [end_props[link.end[0]]] * len(link.start)
                scopes += [start_scopes[i] for i in link.start]
        return fan_start, fan_end, scopes

    def update_objects(self) -> None:
        """Push every edge to its render object or decoration."""
        for edge in self.enter:
            render_object = self._render_object(edge.object_map.object)
            if render_object is None:
                continue
            class_id = edge.object_map.end
            render_object.animate_properties_with_effect(
                [self.end.property_map[class_id][i] for i in edge.id_list],
                [self.end.data_scope_map[class_id][i] for i in edge.id_list],
                edge.index,
                edge.timing,
                edge.effect,
                self.end.bounds,
            )

        for edge in self.linked:
            render_object = self._render_object(edge.object_map.object)
            if render_object is None:
                continue
            if edge.is_merge:
                start_props, end_props, scopes = self._merge_fan(edge)
                render_object.animate_properties_with_merge(
                    start_props, end_props, scopes, edge.index, edge.timing
                )
                continue
            start_class, end_class = edge.object_map.start, edge.object_map.end
            render_object.animate_properties(
                [self.start.property_map[start_class][link.start[0]] for link in edge.id_list],
                [self.end.property_map[end_class][link.end[0]] for link in edge.id_list],
                [self.start.data_scope_map[start_class][link.start[0]] for link in edge.id_list],
                [self.end.data_scope_map[end_class][link.end[0]] for link in edge.id_list],
                edge.index,
                edge.timing,
            )

        for edge in self.exit:
            render_object = self._render_object(edge.object_map.object)
            if render_object is None:
                continue
            class_id = edge.object_map.start
            render_object.animate_properties_with_effect(
                [self.start.property_map[class_id][i] for i in edge.id_list],
                [self.start.data_scope_map[class_id][i] for i in edge.id_list],
                edge.index,
                edge.timing,
                edge.effect,
                self.start.bounds,
            )

        for edge in self.decorations:
            try:
                decoration = self.registry.get_decoration(edge.decoration_id)
            except KeyError:
                logger.warning("No decoration found for '%s'", edge.decoration_id)
                continue
            decoration.properties["start"] = edge.start[0].properties() if edge.start else None
            decoration.properties["end"] = edge.end[0].properties() if edge.end else None

    def render_template(self, side: str) -> Bounds | None:
        """Draw one board without animation, e.g. for a thumbnail.

        Args:
            side: ``"start"`` or ``"end"``.

        Returns:
            The bounds of the drawn board, or None if it is empty.

        """
        if side not in ("start", "end"):
            raise ValueError(f"side must be 'start' or 'end', got {side!r}")
        template = self.start if side == "start" else self.end
        for object_class in template.classes():
            render_object = self._render_object(template.object_id(object_class.class_id))
            if render_object is not None:
                render_object.static_properties(object_class.props(), object_class.scopes())
        return template.bounds

    def set_progress(self, time: float) -> None:
        """Scrub every render object to absolute ``time`` in [0, 1]."""
        self.time = time
        for object_id in self.get_object_ids():
            render_object = self._render_object(object_id)
            if render_object is not None:
                render_object.set_progress(time)

    # Mutators

    def create_sequencing(
        self,
        object_id: str,
        link_type: LinkType | str,
        bind_column: str | None,
        sequence_type: str,
        field: str | None,
    ) -> None:
        """Sequence an edge's peers by a data field.

        Fields that cannot be sequenced fall back to ``all`` with a warning.
        """
        try:
            edge = self._find_edge(object_id, link_type)
        except LookupFailure as e:
            logger.warning("Cannot update sequencing: %s", e)
            return
        template, side = self._side(edge.link_type)
        class_id = getattr(edge.object_map, side)
        scopes = template[class_id].scopes()
        try:
            edge.timing.create_sequencing(sequence_type, field, bind_column, self._dataset(scopes), scopes)
        except ValueError as e:
            logger.warning("Sequencing %s by '%s' not possible, using 'all': %s", object_id, field, e)
            edge.timing.create_sequencing("all")
        self.update_objects()

    def update_effect(self, object_id: str, link_type: LinkType | str, effect: AnimationEffect | str) -> None:
        try:
            edge = self._find_edge(object_id, link_type)
            if isinstance(effect, str):
                if effect not in EFFECTS:
                    raise LookupFailure("effect", effect)
                effect = EFFECTS[effect]
        except LookupFailure as e:
            logger.warning("Cannot update effect: %s", e)
            return
        edge.effect = effect
        self.update_objects()

    def update_easing(
        self,
        item_id: str,
        item_type: str,
        link_type: LinkType | str,
        easing: EasingOption | str,
    ) -> None:
        """Set the easing of an object or decoration edge and its renderer."""
        try:
            if isinstance(easing, str):
                try:
                    easing = get_easing(easing)
                except KeyError as e:
                    raise LookupFailure("easing", easing) from e
            if item_type == "decoration":
                edge: AnyEdge | DecorationEdge = self._find_decoration_edge(item_id, link_type)
                target = self.registry.get_decoration(item_id)
            else:
                edge = self._find_edge(item_id, link_type)
                target = self.registry.get_object(edge.object_map.object)
        except (LookupFailure, KeyError) as e:
            logger.warning("Cannot update easing: %s", e)
            return
        edge.timing.easing = easing
        target.set_easing_option(easing)
        self.update_objects()

    def update_soloed(self, ids: Iterable[str], link_type: LinkType | str, is_soloed: bool) -> None:
        """Show only ``ids`` of one link type, or everything again."""
        ids = set(ids)
        for edge_type in LinkType:
            for edge in self.linker.edges(edge_type):
                render_object = self._render_object(edge.object_map.object)
                if render_object is not None:
                    render_object.visible = not is_soloed or (
                        edge_type == link_type and edge.object_map.object in ids
                    )
        for decoration_edge in self.decorations:
            try:
                decoration = self.registry.get_decoration(decoration_edge.decoration_id)
            except KeyError:
                logger.warning("No decoration found for '%s'", decoration_edge.decoration_id)
                continue
            decoration.set_visible(
                not is_soloed
                or (decoration_edge.link_type == link_type and decoration_edge.decoration_id in ids)
            )

    def update_key(
        self,
        item_id: str,
        item_type: str,
        link_type: LinkType | str,
        key: str,
        value: float,
        which: str | None = None,
    ) -> None:
        """Move a timing key: ``start``, ``end``, ``prop-start`` or ``prop-end``.

        ``which`` names the visual field for the ``prop-*`` keys.

        Raises:
            ValueError: If ``key`` is not a timing key, or a ``prop-*`` key is
                used on a decoration or without ``which``.

        """
        if key not in TIMING_KEYS:
            raise ValueError(f"Unknown timing key '{key}', expected one of {TIMING_KEYS}")
        try:
            if item_type == "decoration":
                edge = self._find_decoration_edge(item_id, link_type)
                timing: ObjectTiming | DecorationTiming = edge.timing
            else:
                timing = self._find_edge(item_id, link_type).timing
        except LookupFailure as e:
            logger.warning("Cannot update key '%s': %s", key, e)
            return

        if key == "start":
            timing.set_start_raw(value)
        elif key == "end":
            timing.set_end_raw(value)
        else:
            if not isinstance(timing, ObjectTiming) or which is None:
                raise ValueError(f"'{key}' needs an object edge and a visual field")
            if key == "prop-start":
                timing.set_prop_start(which, value)
            else:
                timing.set_prop_end(which, value)
        self.update_objects()

    def _retire(self, edges: Sequence[AnyEdge]) -> None:
        for edge in edges:
            self.graph.remove(edge.timing.index)
            for edge_list in (self.enter, self.linked, self.exit):
                if edge in edge_list:
                    edge_list.remove(edge)

    def _relink_parents(self) -> None:
        for link_type in LinkType:
            self.linker.link_parents(link_type)

    def create_link(
        self,
        start_id: str,
        end_id: str,
        object_id: str,
        link_by: Sequence[str] = (),
    ) -> None:
        """Manually link an exiting start class to an entering end class.

        Instances correspond by tuple identity when ``link_by`` is given and
        by the usual data scope identity otherwise. Linking an Ellipse class
        to a Rectangle class (or the reverse) adds a ``shape`` property and
        draws the edge with a morph object. Classes that are already partly
        linked keep their links and the call is logged and ignored.
        """
        try:
            exits = [e for e in self.exit if e.object_map.start == start_id and not e.is_remainder]
            enters = [e for e in self.enter if e.object_map.end == end_id and not e.is_remainder]
            if not exits:
                raise LookupFailure("exit animation", start_id, "exit")
            if not enters:
                raise LookupFailure("enter animation", end_id, "enter")
            start_class = self.start[start_id]
            end_class = self.end[end_id]
        except (LookupFailure, KeyError) as e:
            logger.warning("Cannot create link: %s", e)
            return
        if not start_class.is_well_formed or not end_class.is_well_formed:
            logger.warning("Cannot create link %s -> %s: incomplete class entries", start_id, end_id)
            return

        self._retire([*exits, *enters])
        compare = compare_classes(start_class, end_class)
        edge = self.linker.link_classes(start_class, end_class, compare, "tuples" if link_by else None)

        start_type, end_type = start_class.shape_type, end_class.shape_type
        morph = self.config.morph_compatible
        if start_type != end_type and start_type in morph and end_type in morph:
            edge.prop_list.append("shape")
            edge.timing.set_prop_times("shape", 0.0, 1.0)
            edge.is_animating = True
            object_id = self._spawn_morph_object(object_id, edge)
        edge.object_map = ObjectMap(start_id, end_id, object_id)
        logger.debug("Created link %s -> %s drawn by %s", start_id, end_id, object_id)

        self._relink_parents()
        self.update_objects()

    def _spawn_morph_object(self, object_id: str, edge: LinkedEdge) -> str:
        props = [self.start.property_map[edge.object_map.start][link.start[0]] for link in edge.id_list]
        if self.object_factory is None:
            morph_id = f"morph-{object_id}"
            logger.info("No object factory; morph object for %s is '%s'", object_id, morph_id)
            return morph_id
        return self.object_factory(object_id, props)

    def break_link(self, object_id: str) -> None:
        """Split a linked edge into a fresh exit edge and a fresh enter edge."""
        candidates = [e for e in self.linked if e.object_map.object == object_id]
        if not candidates:
            logger.warning("Cannot break link: %s", LookupFailure("linked animation", object_id, "linked"))
            return
        edge = candidates[0]
        start_id, end_id = edge.object_map.start, edge.object_map.end
        remainders = [
            e
            for e in (*self.exit, *self.enter)
            if e.is_remainder and (e.object_map.start == start_id or e.object_map.end == end_id)
        ]
        self._retire([edge, *remainders])
        if start_id is not None:
            self.exit.append(self.linker.exit_edge(start_id, list(self.start.id_map.get(start_id, []))))
        if end_id is not None:
            self.enter.append(self.linker.enter_edge(end_id, list(self.end.id_map.get(end_id, []))))
        self._relink_parents()
        self.update_objects()

    # Timeline tree

    def _object_node(self, edge: AnyEdge, children: list[LayerNode], link_type: LinkType) -> LayerNode:
        template, side = self._side(link_type)
        class_id = getattr(edge.object_map, side)
        object_class = template[class_id]
        props = object_class.props()
        scopes = object_class.scopes()
        display_type = _display_type(props[0]) if props else "Empty"
        peer_field = next(iter(scopes[0].filters), None) if scopes else None
        dataset = self._dataset(scopes)
        options = [info.field for info in sequenceable_fields(dataset, scopes)] if dataset is not None else []
        properties = []
        for name in edge.prop_list:
            times = edge.timing.get_prop_times(name)
            if times is not None:
                properties.append(PropertyKey(name, times.start, times.end))
        return LayerNode(
            id=edge.object_map.object,
            type="object",
            label=f"{display_type}: by {peer_field}" if peer_field else display_type,
            counts=edge.counts,
            timing=edge.timing,
            link_type=link_type,
            is_animating=edge.is_animating,
            properties=properties,
            peers=PeerInfo(peer_field, options, edge.timing.peer_scale, list(edge.timing.peer_groups)),
            child_nodes=children,
            linked_by=list(edge.linked_by),
            effect=getattr(edge, "effect", None),
        )

    def _object_tree(self, link_type: LinkType) -> list[LayerNode]:
        # The timing graph already holds the acyclic parent links
        edges = self.linker.edges(link_type)
        by_timing = {edge.timing.index: edge for edge in edges}

        def build(edge: AnyEdge) -> LayerNode:
            children = [build(by_timing[c.index]) for c in edge.timing.children if c.index in by_timing]
            return self._object_node(edge, children, link_type)

        return [
            build(edge)
            for edge in edges
            if edge.timing.parent is None or edge.timing.parent.index not in by_timing
        ]

    def _decoration_node(self, edge: DecorationEdge) -> LayerNode:
        return LayerNode(
            id=edge.decoration_id,
            type="decoration",
            label=edge.label,
            counts=edge.counts,
            timing=edge.timing,
            link_type=edge.link_type,
            is_animating=edge.is_animating,
        )

    def get_layer_data(self) -> list[LayerNode]:
        """Roots-first tree of all edges for the timeline.

        Objects come first: animating links, enters, exits, then static
        links. Decorations follow in the same order.
        """
        linked = self._object_tree(LinkType.LINKED)
        layers = [n for n in linked if n.is_animating]
        layers += self._object_tree(LinkType.ENTER)
        layers += self._object_tree(LinkType.EXIT)
        layers += [n for n in linked if not n.is_animating]

        decorations = [self._decoration_node(e) for e in self.decorations]
        layers += [n for n in decorations if n.link_type is LinkType.LINKED and n.is_animating]
        layers += [n for n in decorations if n.link_type is LinkType.ENTER]
        layers += [n for n in decorations if n.link_type is LinkType.EXIT]
        layers += [n for n in decorations if n.link_type is LinkType.LINKED and not n.is_animating]
        return layers

    def to_dict(self) -> dict[str, Any]:
        """Summary of the current edges keyed by link type."""
        return {
            str(link_type): [
                {
                    "object": e.object_map.object,
                    "start": e.object_map.start,
                    "end": e.object_map.end,
                    "counts": list(e.counts),
                    "propList": list(e.prop_list),
                    "isRemainder": e.is_remainder,
                }
                for e in self.linker.edges(link_type)
            ]
            for link_type in LinkType
        }
