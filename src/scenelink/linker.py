"""Partition two templates into enter, linked and exit edges."""

import logging
from collections.abc import Callable, Sequence

from scenelink.comparator import Comparison, compare_classes, compare_sum
from scenelink.config import DEFAULT_CONFIG, LinkerConfig
from scenelink.data import ROW_ID, DataScope
from scenelink.edges import (
    DecorationEdge,
    EnterEdge,
    ExitEdge,
    IdLink,
    LinkedEdge,
    LinkType,
    ObjectMap,
)
from scenelink.effects import FADE_IN, FADE_OUT
from scenelink.errors import TimingCycleError
from scenelink.matching import Candidate, GreedyMatching, MatchingStrategy, MatchKind
from scenelink.shapes import CONTAINER_TYPES, property_list_from_diffs
from scenelink.template import DecorationSpec, ObjectClass, Template, decorations_animating
from scenelink.timing import ObjectTiming, TimingGraph

logger = logging.getLogger(__name__)

AnyEdge = EnterEdge | ExitEdge | LinkedEdge


def decoration_key(object_id: str, visual_field: str, specs: Sequence[DecorationSpec]) -> str:
    return f"{object_id}__{visual_field}__{specs[0].type}"


def _linked_by_filters(one: DataScope, many: Sequence[DataScope]) -> list[str]:
    """Filter columns whose value the one-side scope shares with its matches."""
    many_pairs = {(k, str(v)) for scope in many for k, v in scope.filters.items()}
    shared = [k for k, v in one.filters.items() if (k, str(v)) in many_pairs]
    return shared[::-1]


class ObjectLinker:
    """Decides, per object class, whether it enters, exits or links.

    Construction only records the inputs; call :meth:`link` to run. The
    linker never raises for malformed templates: classes that cannot be
    scored simply end up as enter or exit edges.
    """

    def __init__(
        self,
        start: Template,
        end: Template,
        config: LinkerConfig = DEFAULT_CONFIG,
        strategy: MatchingStrategy | None = None,
        graph: TimingGraph | None = None,
    ) -> None:
        self.start = start
        self.end = end
        self.config = config
        self.strategy = strategy if strategy is not None else GreedyMatching()
        self.graph = graph if graph is not None else TimingGraph()
        self.enter: list[EnterEdge] = []
        self.linked: list[LinkedEdge] = []
        self.exit: list[ExitEdge] = []
        self.decorations: list[DecorationEdge] = []

    def new_timing(self, properties: Sequence[str]) -> ObjectTiming:
        return ObjectTiming(properties, self.graph, self.config)

    def candidates(self) -> list[Candidate]:
        """Every same-type (start, end) class pair in start-major order."""
        candidates = []
        order = 0
        for start_class in self.start.classes():
            for end_class in self.end.classes():
                compare = compare_classes(start_class, end_class)
                if compare.type == 1:
                    score = compare_sum(compare, self.config.weights)
                    candidates.append(
                        Candidate(start_class.class_id, end_class.class_id, compare, score, order)
                    )
                order += 1
        return candidates

    def link(self) -> tuple[list[EnterEdge], list[LinkedEdge], list[ExitEdge]]:
        """Run matching, decoration linking and parent wiring from scratch."""
        for edge in (*self.enter, *self.linked, *self.exit):
            self.graph.remove(edge.timing.index)
        self.enter, self.linked, self.exit, self.decorations = [], [], [], []

        matches = self.strategy.select(self.candidates(), self.config.link_threshold)
        matched_start: set[str] = set()
        matched_end: set[str] = set()
        for match in matches:
            start_class = self.start[match.start_id]
            end_class = self.end[match.end_id]
            if match.kind is MatchKind.LINK:
                logger.debug(
                    "Linking %s -> %s (score %.2f)", match.start_id, match.end_id, match.candidate.score
                )
                self.link_classes(start_class, end_class, match.candidate.compare)
            else:
                logger.debug("Merging %s -> %s", match.start_id, match.end_id)
                self.merge_classes(start_class, end_class, match.candidate.compare)
            matched_start.add(match.start_id)
            matched_end.add(match.end_id)

        for class_id, id_list in self.start.items():
            if class_id not in matched_start:
                self.exit.append(self.exit_edge(class_id, list(id_list)))
        for class_id, id_list in self.end.items():
            if class_id not in matched_end:
                self.enter.append(self.enter_edge(class_id, list(id_list)))

        self.link_decorations()
        for link_type in LinkType:
            self.link_parents(link_type)
        return self.enter, self.linked, self.exit

    def enter_edge(self, class_id: str, id_list: list[str], *, is_remainder: bool = False) -> EnterEdge:
        return EnterEdge(
            object_map=ObjectMap(None, class_id, self.end.object_id(class_id)),
            id_list=id_list,
            timing=self.new_timing(["effect"]),
            effect=FADE_IN,
            is_remainder=is_remainder,
        )

    def exit_edge(self, class_id: str, id_list: list[str], *, is_remainder: bool = False) -> ExitEdge:
        return ExitEdge(
            object_map=ObjectMap(class_id, None, self.start.object_id(class_id)),
            id_list=id_list,
            timing=self.new_timing(["effect"]),
            effect=FADE_OUT,
            is_remainder=is_remainder,
        )

    def link_classes(
        self,
        start_class: ObjectClass,
        end_class: ObjectClass,
        compare: Comparison,
        link_by: str | None = None,
    ) -> LinkedEdge:
        """Build an identity link plus remainder enter/exit edges.

        Instances correspond by filter identity when the data scope score
        dominates, otherwise by tuple identity. ``link_by="tuples"`` forces
        tuple identity and ``link_by="filters"`` forces filter identity.
        """
        use_filters = compare.data_scope >= compare.data_tuples and compare.data_scope > 0
        if link_by is not None:
            use_filters = link_by == "filters"
        key: Callable[[DataScope], str] = (
            (lambda s: s.filter_string) if use_filters else (lambda s: s.tuple_string)
        )

        end_by_key: dict[str, str] = {}
        for end_id in end_class.id_list:
            end_by_key.setdefault(key(end_class.data_scope_map[end_id]), end_id)

        id_links: list[IdLink] = []
        id_exit: list[str] = []
        used_end: set[str] = set()
        for start_id in start_class.id_list:
            end_id = end_by_key.get(key(start_class.data_scope_map[start_id]))
            if end_id is None or end_id in used_end:
                id_exit.append(start_id)
                continue
            used_end.add(end_id)
            id_links.append(IdLink([start_id], [end_id]))
        id_enter = [i for i in end_class.id_list if i not in used_end]

        if use_filters:
            first_scope = start_class.data_scope_map[start_class.id_list[0]]
            linked_by = list(first_scope.all_filters)[::-1]
        else:
            linked_by = [ROW_ID]

        shape_type = start_class.shape_type or ""
        prop_list = property_list_from_diffs(
            [start_class.property_map[link.start[0]] for link in id_links],
            [end_class.property_map[link.end[0]] for link in id_links],
            shape_type,
            self.config.numeric_tolerance,
        )
        edge = LinkedEdge(
            object_map=ObjectMap(
                start_class.class_id, end_class.class_id, self.start.object_id(start_class.class_id)
            ),
            id_list=id_links,
            prop_list=prop_list,
            linked_by=linked_by,
            timing=self.new_timing(prop_list),
            is_animating=shape_type in CONTAINER_TYPES or bool(prop_list),
        )
        self.linked.append(edge)

        if id_enter:
            self.enter.append(self.enter_edge(end_class.class_id, id_enter, is_remainder=True))
        if id_exit:
            remainder = self.exit_edge(start_class.class_id, id_exit, is_remainder=True)
            remainder.index = len(id_links)
            self.exit.append(remainder)
        return edge

    def merge_classes(
        self,
        start_class: ObjectClass,
        end_class: ObjectClass,
        compare: Comparison,
    ) -> LinkedEdge:
        """Build a combine (many start -> one end) or partition edge."""
        combine_start = compare.combine_start
        one_class, many_class = (start_class, end_class) if combine_start else (end_class, start_class)
        one_by_tuple = {
            one_class.data_scope_map[i].tuple_string: i for i in reversed(one_class.id_list)
        }
        many_by_tuple = {
            many_class.data_scope_map[i].tuple_string: i for i in reversed(many_class.id_list)
        }

        id_links: list[IdLink] = []
        linked_by: list[str] = []
        for tuple_string, many_strings in compare.combine_map.items():
            if not many_strings:
                continue
            one_id = one_by_tuple[tuple_string]
            many_ids = [many_by_tuple[s] for s in many_strings]
            if combine_start:
                id_links.append(IdLink([one_id], many_ids))
            else:
                id_links.append(IdLink(many_ids, [one_id]))
            if not linked_by:
                linked_by = _linked_by_filters(
                    one_class.data_scope_map[one_id],
                    [many_class.data_scope_map[i] for i in many_ids],
                )

        shape_type = start_class.shape_type or ""
        prop_list = property_list_from_diffs(
            [start_class.property_map[link.start[0]] for link in id_links],
            [end_class.property_map[link.end[0]] for link in id_links],
            shape_type,
            self.config.numeric_tolerance,
        )
        object_id = (
            self.end.object_id(end_class.class_id)
            if combine_start
            else self.start.object_id(start_class.class_id)
        )
        edge = LinkedEdge(
            object_map=ObjectMap(start_class.class_id, end_class.class_id, object_id),
            id_list=id_links,
            prop_list=prop_list,
            linked_by=linked_by,
            timing=self.new_timing(prop_list),
            is_merge=True,
            is_animating=True,
        )
        self.linked.append(edge)

        # Groups outside every complete cover enter or exit on their own
        linked_end, linked_start = set(edge.end_ids), set(edge.start_ids)
        id_enter = [i for i in end_class.id_list if i not in linked_end]
        id_exit = [i for i in start_class.id_list if i not in linked_start]
        if id_enter:
            self.enter.append(self.enter_edge(end_class.class_id, id_enter, is_remainder=True))
        if id_exit:
            remainder = self.exit_edge(start_class.class_id, id_exit, is_remainder=True)
            remainder.index = len(id_links)
            self.exit.append(remainder)
        return edge

    def _owner_object(self, class_id: str, side: str) -> str:
        for edge in (*self.linked, *(self.exit if side == "start" else self.enter)):
            if getattr(edge.object_map, side) == class_id:
                return edge.object_map.object
        template = self.start if side == "start" else self.end
        return template.object_id(class_id)

    def _decoration_keys(self, side: str) -> dict[str, tuple[str, str]]:
        template = self.start if side == "start" else self.end
        keys: dict[str, tuple[str, str]] = {}
        for class_id, fields in template.decoration_map.items():
            object_id = self._owner_object(class_id, side)
            for visual_field, specs in fields.items():
                if specs:
                    keys[decoration_key(object_id, visual_field, specs)] = (class_id, visual_field)
        return keys

    def link_decorations(self) -> list[DecorationEdge]:
        """Match axes and legends through the edges of their owning classes."""
        self.decorations = []
        start_keys = self._decoration_keys("start")
        end_keys = self._decoration_keys("end")

        for key, (start_class, visual_field) in start_keys.items():
            start_specs = self.start.decoration_map[start_class][visual_field]
            if key in end_keys:
                end_class, end_field = end_keys[key]
                end_specs = self.end.decoration_map[end_class][end_field]
                edge = DecorationEdge(
                    link_type=LinkType.LINKED,
                    decoration_id=start_specs[0].decoration_id,
                    key=key,
                    start=start_specs,
                    end=end_specs,
                    is_animating=decorations_animating(
                        start_specs[0], end_specs[0], self.config.decoration_translate_tolerance
                    ),
                )
            else:
                edge = DecorationEdge(
                    link_type=LinkType.EXIT,
                    decoration_id=start_specs[0].decoration_id,
                    key=key,
                    start=start_specs,
                )
            self.decorations.append(edge)

        for key, (end_class, visual_field) in end_keys.items():
            if key in start_keys:
                continue
            end_specs = self.end.decoration_map[end_class][visual_field]
            self.decorations.append(
                DecorationEdge(
                    link_type=LinkType.ENTER,
                    decoration_id=end_specs[0].decoration_id,
                    key=key,
                    end=end_specs,
                ),
            )
        return self.decorations

    def edges(self, link_type: LinkType) -> list[AnyEdge]:
        if link_type is LinkType.ENTER:
            return list(self.enter)
        if link_type is LinkType.EXIT:
            return list(self.exit)
        return list(self.linked)

    def link_parents(self, link_type: LinkType) -> None:
        """Nest each edge's timing inside the edge owning its parent class.

        Enter edges follow the end template's parent map; exit and linked
        edges follow the start template's. Links that would create a cycle
        are logged and skipped.
        """
        edges = self.edges(link_type)
        side = "end" if link_type is LinkType.ENTER else "start"
        template = self.end if side == "end" else self.start
        by_class = {}
        for edge in edges:
            by_class.setdefault(getattr(edge.object_map, side), edge)

        for edge in edges:
            class_id = getattr(edge.object_map, side)
            parent_class = template.parent_of(class_id) if class_id is not None else None
            if parent_class is None:
                continue
            parent_edge = by_class.get(parent_class)
            if parent_edge is None:
                continue
            try:
                edge.timing.set_parent(parent_edge.timing)
            except TimingCycleError:
                logger.warning(
                    "Skipping parent link %s -> %s for %s edges: cycle", class_id, parent_class, link_type
                )
