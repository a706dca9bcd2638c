"""Timing windows for animation edges.

Every edge owns a timing. Raw start/end values are fractions of the edge's
own span; a clamped scale maps them into absolute transition time. Nested
composites take their scale range from their parent, so a child always
animates inside the window its parent grants it.

Parent relationships live in a :class:`TimingGraph`, an arena indexed by
insertion order. Writes invalidate a node and its descendants depth-first;
reads recompute lazily from the parent chain.
"""

import dataclasses
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from scenelink.config import DEFAULT_CONFIG, LinkerConfig
from scenelink.data import (
    AGGREGATORS,
    CATEGORICAL_TYPES,
    NUMERIC_TYPES,
    ORDER_DATA_SOURCE,
    ORDER_LIST,
    SEQUENCEABLE_TYPES,
    DataScope,
    Dataset,
    FieldInfo,
    Grouping,
    as_number,
    compute_aggregate,
    compute_grouping,
    format_value,
)
from scenelink.easing import EASE_LINEAR, EasingOption
from scenelink.errors import TimingCycleError, UnsupportedSequencingField
from scenelink.scales import LinearScale, PointScale

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


class Timing(Protocol):
    """What the renderer needs from any edge timing."""

    start_raw: float
    end_raw: float
    easing: EasingOption

    @property
    def start_scaled(self) -> float: ...

    @property
    def end_scaled(self) -> float: ...

    def set_start_raw(self, start_raw: float) -> None: ...

    def set_end_raw(self, end_raw: float) -> None: ...

    def progress(self, time: float) -> float: ...


class SequenceType(StrEnum):
    ALL = "all"
    STAGGER = "stagger"
    SPEED = "speed"


@dataclass
class PropTimes:
    """Sub-window of a single visual field within the edge's own span."""

    start: float = 0.0
    end: float = 1.0


@dataclass
class PeerGroup:
    """One row of the stagger/speed editor."""

    delay: float
    duration: float
    label: str
    count: int
    value: Any = None


@dataclass
class Sequencing:
    """How the edge's window is distributed over its peers."""

    type: SequenceType = SequenceType.ALL
    field: str | None = None
    duration: float = 1.0
    delay: float = 0.0
    sub_type: str | None = None
    aggr: str | None = None
    info: FieldInfo | None = None
    bind_column: str | None = None
    data_scopes: list[DataScope] = dataclasses.field(default_factory=list)
    grouping: Grouping | None = None
    is_reverse: bool = False
    scale: LinearScale | PointScale | None = None


class TimingGraph:
    """Arena of object timings with explicit parent/child links.

    Removed timings leave a tombstone so the indices of the remaining
    timings stay valid.
    """

    def __init__(self) -> None:
        self._nodes: list[ObjectTiming | None] = []
        self._parents: list[int | None] = []
        self._children: list[list[int]] = []

    def __len__(self) -> int:
        return sum(1 for node in self._nodes if node is not None)

    def __iter__(self) -> Iterator["ObjectTiming"]:
        return (node for node in self._nodes if node is not None)

    def __getitem__(self, index: int) -> "ObjectTiming":
        node = self._nodes[index]
        if node is None:
            raise KeyError(f"Timing {index} was removed")
        return node

    def add(self, timing: "ObjectTiming") -> int:
        """Register a timing and return its index."""
        self._nodes.append(timing)
        self._parents.append(None)
        self._children.append([])
        return len(self._nodes) - 1

    def remove(self, index: int) -> None:
        """Detach a timing from its parent and children and drop it."""
        if self._nodes[index] is None:
            return
        for child in self.children(index):
            self.set_parent(child, None)
        self.set_parent(index, None)
        self._nodes[index] = None

    def parent(self, index: int) -> int | None:
        return self._parents[index]

    def children(self, index: int) -> list[int]:
        return list(self._children[index])

    def ancestors(self, index: int) -> Iterator[int]:
        """Indices from the direct parent up to the root."""
        current = self._parents[index]
        while current is not None:
            yield current
            current = self._parents[current]

    def descendants(self, index: int) -> list[int]:
        """All descendants in depth-first pre-order."""
        result = []
        stack = list(reversed(self._children[index]))
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(reversed(self._children[current]))
        return result

    def set_parent(self, child: int, parent: int | None) -> None:
        """Attach ``child`` under ``parent``, or detach it when parent is None.

        Raises:
            TimingCycleError: If the link would make the graph cyclic.

        """
        if parent is not None and (parent == child or child in self.ancestors(parent)):
            raise TimingCycleError(f"Timing {child} cannot be nested under its descendant {parent}")
        previous = self._parents[child]
        if previous is not None:
            self._children[previous].remove(child)
        self._parents[child] = parent
        if parent is not None:
            self._children[parent].append(child)
        self.invalidate(child)

    def invalidate(self, index: int) -> None:
        """Drop cached scales of a timing and everything nested under it."""
        for i in [index, *self.descendants(index)]:
            self._nodes[i]._invalidate()


class ObjectTiming:
    """Timing of one object edge, including peer sequencing and nesting."""

    def __init__(
        self,
        properties: Sequence[str] = (),
        graph: TimingGraph | None = None,
        config: LinkerConfig = DEFAULT_CONFIG,
    ) -> None:
        self.graph = graph if graph is not None else TimingGraph()
        self.config = config
        self.start_raw = 0.0
        self.end_raw = 1.0
        self.easing: EasingOption = EASE_LINEAR
        self.peer_groups: list[PeerGroup] = []
        self._prop_times: dict[str, PropTimes] = {}
        self._raw_scale = LinearScale((0.0, 1.0), (0.0, 1.0))
        self._peer_scale = LinearScale()
        self._scale: LinearScale | None = None
        self._sequencing = Sequencing()
        self.index = self.graph.add(self)
        for prop in properties:
            self.set_prop_times(prop, 0.0, 1.0)
        self._update_peer_groups()

    def __repr__(self) -> str:
        return (
            f"ObjectTiming(index={self.index}, raw=[{self.start_raw}, {self.end_raw}], "
            f"sequence={self._sequencing.type.value})"
        )

    # Nesting

    @property
    def parent(self) -> "ObjectTiming | None":
        index = self.graph.parent(self.index)
        return self.graph[index] if index is not None else None

    @property
    def children(self) -> list["ObjectTiming"]:
        return [self.graph[i] for i in self.graph.children(self.index)]

    def set_parent(self, parent: "ObjectTiming | None") -> None:
        """Nest this timing inside ``parent``'s window.

        Raises:
            ValueError: If the two timings belong to different graphs.
            TimingCycleError: If ``parent`` is nested under this timing.

        """
        if parent is not None and parent.graph is not self.graph:
            raise ValueError("Parent timing belongs to a different timing graph")
        self.graph.set_parent(self.index, parent.index if parent is not None else None)

    def _invalidate(self) -> None:
        self._scale = None

    def _changed(self) -> None:
        self.graph.invalidate(self.index)

    def _scale_range(self) -> tuple[float, float]:
        parent = self.parent
        if parent is None:
            return (0.0, 1.0)
        if parent.sequence_type is SequenceType.ALL:
            return (parent.start_scaled, parent.end_scaled)
        span = parent.end_raw - parent.start_raw
        end = parent.scale(parent.sequence_default_duration * span + parent.start_raw)
        return (parent.start_scaled, end)

    @property
    def scale(self) -> LinearScale:
        """Clamped map from raw [0, 1] into absolute time."""
        if self._scale is None:
            self._scale = LinearScale((0.0, 1.0), self._scale_range())
        return self._scale

    @property
    def peer_scale(self) -> LinearScale:
        return self._peer_scale

    # Raw window

    def set_start_raw(self, start_raw: float) -> None:
        self.start_raw = _clamp(start_raw)
        self._raw_scale.range = (self.start_raw, self.end_raw)
        self._changed()

    def set_end_raw(self, end_raw: float) -> None:
        self.end_raw = _clamp(end_raw)
        self._raw_scale.range = (self.start_raw, self.end_raw)
        self._changed()

    @property
    def start_scaled(self) -> float:
        return self.scale(self.start_raw)

    @property
    def end_scaled(self) -> float:
        return self.scale(self.end_raw)

    @property
    def total_duration(self) -> float:
        return self.end_scaled - self.start_scaled

    def progress(self, time: float) -> float:
        """Eased progress of the whole edge at absolute ``time``."""
        span = self.end_scaled - self.start_scaled
        if span <= 0:
            return 1.0 if time >= self.end_scaled else 0.0
        return self.easing((time - self.start_scaled) / span)

    # Per-property windows

    def set_prop_times(self, prop: str, start: float, end: float) -> None:
        times = self._prop_times.setdefault(prop, PropTimes())
        times.start = _clamp(start)
        times.end = _clamp(end)

    def set_prop_start(self, prop: str, start: float) -> None:
        self._prop_times.setdefault(prop, PropTimes()).start = _clamp(start)

    def set_prop_end(self, prop: str, end: float) -> None:
        self._prop_times.setdefault(prop, PropTimes()).end = _clamp(end)

    def get_prop_times(self, prop: str) -> PropTimes | None:
        return self._prop_times.get(prop)

    @property
    def prop_time_map(self) -> dict[str, PropTimes]:
        return dict(self._prop_times)

    # Sequencing

    def _set_sequencing_to_default(self) -> None:
        self._peer_scale.range = (0.0, 1.0)
        self._sequencing = Sequencing()

    def create_sequencing(
        self,
        sequence_type: str,
        field: str | None = None,
        bind_column: str | None = None,
        dataset: Dataset | None = None,
        data_scopes: Sequence[DataScope] = (),
    ) -> None:
        """Distribute this edge's window across its peers.

        ``all`` animates every peer together. ``stagger`` delays each group of
        peers by the value of ``field`` with a shared duration; ``speed`` keeps
        the delay and varies the duration instead. Numeric fields are
        aggregated per peer with MEAN; categorical fields keep data source
        order.

        Raises:
            ValueError: If ``sequence_type`` is not all, stagger or speed.
            UnsupportedSequencingField: If the field is missing, has a type
                that cannot be ordered, or no peer has data. The current
                sequencing is left unchanged.

        """
        kind = SequenceType(sequence_type)
        if kind is SequenceType.ALL:
            self._set_sequencing_to_default()
            self._update_peer_groups()
            self._changed()
            return

        if dataset is None or field is None:
            raise UnsupportedSequencingField(f"Sequencing by '{kind}' needs a field and a dataset")
        try:
            info = dataset.get_info(field)
        except KeyError as e:
            raise UnsupportedSequencingField(str(e)) from e
        if info.type not in SEQUENCEABLE_TYPES:
            raise UnsupportedSequencingField(f"Cannot sequence by '{field}' of type '{info.type}'")

        aggr = ORDER_DATA_SOURCE if info.type in CATEGORICAL_TYPES else "MEAN"
        scopes = list(data_scopes)
        grouping = compute_grouping(field, info, aggr, False, bind_column, scopes)
        if not grouping.unique:
            raise UnsupportedSequencingField(f"No peer has data for '{field}'")

        self._sequencing = Sequencing(
            type=kind,
            field=field,
            sub_type="linear",
            aggr=aggr,
            info=info,
            bind_column=bind_column,
            data_scopes=scopes,
            grouping=grouping,
            is_reverse=False,
            scale=self._build_scale(info, grouping, reverse=False),
        )
        default_duration = max(self.config.min_peer_duration, 1 / len(grouping.unique))
        logger.debug(
            "Sequencing %s by '%s' over %d groups, duration %.2f",
            kind,
            field,
            len(grouping.unique),
            default_duration,
        )
        self._apply_default_duration(default_duration)
        self._update_peer_groups()
        self._changed()

    @staticmethod
    def _build_scale(info: FieldInfo, grouping: Grouping, reverse: bool) -> LinearScale | PointScale:
        if info.type in CATEGORICAL_TYPES:
            return PointScale(list(grouping.unique))
        domain = (as_number(grouping.min), as_number(grouping.max))
        if reverse:
            domain = domain[::-1]
        return LinearScale(domain)

    def _apply_default_duration(self, default_duration: float) -> None:
        seq = self._sequencing
        if seq.scale is None:
            return
        if seq.type is SequenceType.STAGGER:
            seq.scale.range = (0.0, 1.0 - default_duration)
            seq.duration = default_duration
            self._peer_scale.range = (0.0, default_duration)
        elif seq.type is SequenceType.SPEED:
            seq.scale.range = (default_duration, 1.0)
            seq.delay = 0.0
            self._peer_scale.range = (0.0, default_duration)

    def set_default_duration(self, default_duration: float) -> None:
        """Change the shared peer duration without resetting the field.

        Raises:
            ValueError: If the duration is not in (0, 1].

        """
        if not 0 < default_duration <= 1:
            raise ValueError(f"Default duration must be in (0, 1], got {default_duration}")
        self._apply_default_duration(default_duration)
        self._update_peer_groups()
        self._changed()

    def _regroup(self) -> None:
        seq = self._sequencing
        if seq.info is None or seq.field is None or seq.aggr is None:
            return
        seq.grouping = compute_grouping(
            seq.field, seq.info, seq.aggr, seq.is_reverse, seq.bind_column, seq.data_scopes
        )
        previous_range = seq.scale.range if seq.scale is not None else (0.0, 1.0)
        seq.scale = self._build_scale(seq.info, seq.grouping, seq.is_reverse)
        seq.scale.range = previous_range
        self._update_peer_groups()
        self._changed()

    def set_aggregation(self, aggr: str) -> None:
        """Change how peers are grouped: MEAN/SUM/MEDIAN/MAX/MIN, or A→Z/DATA SRC.

        Raises:
            ValueError: If ``aggr`` does not apply to the sequencing field type.

        """
        info = self._sequencing.info
        if info is None:
            return
        allowed = ORDER_LIST if info.type in CATEGORICAL_TYPES else list(AGGREGATORS)
        if aggr not in allowed:
            raise ValueError(f"Aggregation '{aggr}' not valid for '{info.type}'; use one of {allowed}")
        self._sequencing.aggr = aggr
        self._regroup()

    def toggle_is_reverse(self) -> None:
        if self._sequencing.info is None:
            return
        self._sequencing.is_reverse = not self._sequencing.is_reverse
        self._regroup()

    def _data_scope_value(self, data_scope: DataScope) -> Any:
        seq = self._sequencing
        if not data_scope.tuples or seq.info is None:
            return None
        if seq.info.type in NUMERIC_TYPES and seq.aggr in AGGREGATORS:
            return compute_aggregate((t.get(seq.field) for t in data_scope.tuples), seq.aggr)
        return data_scope.tuples[0].get(seq.field)

    def _peer_group_value(self, data_scope: DataScope) -> Any:
        seq = self._sequencing
        if seq.grouping is None:
            return None
        value = None
        if seq.bind_column is not None and seq.bind_column in data_scope.filters:
            value = seq.grouping.bind.get(data_scope.filters[seq.bind_column])
        if value is None:
            value = self._data_scope_value(data_scope)
        return value

    def _scaled(self, value: Any) -> float | None:
        seq = self._sequencing
        if value is None or seq.scale is None or seq.info is None:
            return None
        if isinstance(seq.scale, PointScale):
            return seq.scale(value)
        return seq.scale(as_number(value))

    def get_delay(self, data_scope: DataScope, props: Any = None) -> float:
        seq = self._sequencing
        if seq.type is SequenceType.STAGGER:
            delay = self._scaled(self._peer_group_value(data_scope))
            return delay if delay is not None else 0.0
        return seq.delay

    def get_duration(self, data_scope: DataScope, props: Any = None) -> float:
        seq = self._sequencing
        if seq.type is SequenceType.SPEED:
            duration = self._scaled(self._peer_group_value(data_scope))
            return duration if duration is not None else self.sequence_default_duration
        return seq.duration

    def get_peer(self, data_scope: DataScope, props: Any = None) -> tuple[float, float]:
        """Absolute (start, duration) of one peer in the top-level [0, 1] time.

        The peer's delay and duration are placed inside this edge's raw window
        and then, recursively, inside the parent's window for the same peer.
        """
        delay = self.get_delay(data_scope, props)
        duration = self.get_duration(data_scope, props)
        scaled_delay = self._raw_scale(delay)
        scaled_duration = self._raw_scale(delay + duration) - scaled_delay
        parent = self.parent
        if parent is None:
            return (scaled_delay, scaled_duration)
        parent_start, parent_duration = parent.get_peer(data_scope, props)
        return (scaled_delay * parent_duration + parent_start, scaled_duration * parent_duration)

    def peer_progress(self, time: float, data_scope: DataScope, props: Any = None) -> float:
        """Eased progress of one peer at absolute ``time``."""
        start, duration = self.get_peer(data_scope, props)
        if duration <= 0:
            return 1.0 if time >= start else 0.0
        return self.easing((time - start) / duration)

    def prop_progress(self, time: float, prop: str, data_scope: DataScope) -> float:
        """Eased progress of one visual field of one peer at absolute ``time``."""
        start, duration = self.get_peer(data_scope)
        times = self._prop_times.get(prop, PropTimes())
        prop_start = start + times.start * duration
        prop_duration = (times.end - times.start) * duration
        if prop_duration <= 0:
            return 1.0 if time >= prop_start else 0.0
        return self.easing((time - prop_start) / prop_duration)

    @property
    def sequencing(self) -> Sequencing:
        return self._sequencing

    @property
    def sequence_type(self) -> SequenceType:
        return self._sequencing.type

    @property
    def sequence_default_duration(self) -> float:
        seq = self._sequencing
        if seq.type is SequenceType.SPEED and seq.scale is not None:
            return seq.scale.range[0]
        return seq.duration

    @property
    def sequence_field(self) -> str | None:
        return self._sequencing.field

    @property
    def sequence_field_type(self) -> str:
        return self._sequencing.info.type if self._sequencing.info is not None else "integer"

    @property
    def sequence_aggr(self) -> str | None:
        return self._sequencing.aggr

    @property
    def sequence_is_reverse(self) -> bool:
        return self._sequencing.is_reverse

    @property
    def sequence_bind_column(self) -> str | None:
        return self._sequencing.bind_column

    def _update_peer_groups(self) -> None:
        seq = self._sequencing
        if seq.type is SequenceType.ALL or seq.grouping is None or seq.info is None:
            self.peer_groups = [PeerGroup(seq.delay, seq.duration, "All Peer Shapes", -1)]
            return
        groups = []
        for value, count in seq.grouping.unique.items():
            scaled = self._scaled(value)
            label = f"{seq.field} = {format_value(value, seq.info.type)}"
            if seq.type is SequenceType.STAGGER:
                delay = scaled if scaled is not None else 0.0
                groups.append(PeerGroup(delay, seq.duration, label, count, value))
            else:
                duration = scaled if scaled is not None else self.sequence_default_duration
                groups.append(PeerGroup(seq.delay, duration, label, count, value))
        groups.reverse()
        self.peer_groups = groups


class DecorationTiming:
    """Timing of an axis or legend edge; decorations have no peers."""

    def __init__(self) -> None:
        self.start_raw = 0.0
        self.end_raw = 1.0
        self.scale = LinearScale()
        self.easing: EasingOption = EASE_LINEAR

    def __repr__(self) -> str:
        return f"DecorationTiming(raw=[{self.start_raw}, {self.end_raw}])"

    def set_start_raw(self, start_raw: float) -> None:
        self.start_raw = _clamp(start_raw)

    def set_end_raw(self, end_raw: float) -> None:
        self.end_raw = _clamp(end_raw)

    @property
    def start_scaled(self) -> float:
        return self.scale(self.start_raw)

    @property
    def end_scaled(self) -> float:
        return self.scale(self.end_raw)

    @property
    def total_duration(self) -> float:
        return self.end_scaled - self.start_scaled

    @property
    def progress_scale(self) -> LinearScale:
        return LinearScale((self.start_scaled, self.end_scaled), (0.0, 1.0))

    def progress(self, time: float) -> float:
        """Eased progress at absolute ``time``."""
        if self.end_scaled <= self.start_scaled:
            return 1.0 if time >= self.end_scaled else 0.0
        return self.easing(self.progress_scale(time))
