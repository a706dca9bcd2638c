"""Tests for object timings, the timing graph and peer sequencing."""

import pytest

from scenelink.data import DataScope, Dataset
from scenelink.easing import get_easing
from scenelink.errors import TimingCycleError, UnsupportedSequencingField
from scenelink.timing import DecorationTiming, ObjectTiming, SequenceType, TimingGraph


@pytest.fixture
def graph() -> TimingGraph:
    """An empty timing graph shared by the timings of one test."""
    return TimingGraph()


@pytest.fixture
def row_scopes(sales: Dataset) -> list[DataScope]:
    """One data scope per sales row."""
    return [DataScope({"Row_ID": i}, dataset=sales) for i in range(5)]


class TestRawWindow:
    """Tests for the raw window, progress and per-property windows."""

    def test_defaults(self) -> None:
        """A new timing spans the whole transition with no sequencing."""
        timing = ObjectTiming()
        assert (timing.start_scaled, timing.end_scaled) == (0.0, 1.0)
        assert timing.sequence_type is SequenceType.ALL

    def test_set_raw_round_trip(self) -> None:
        """Raw start and end are stored as given inside [0, 1]."""
        timing = ObjectTiming()
        timing.set_start_raw(0.25)
        timing.set_end_raw(0.75)
        assert timing.start_raw == 0.25
        assert timing.end_raw == 0.75
        assert timing.total_duration == pytest.approx(0.5)

    def test_raw_values_clamped(self) -> None:
        """Raw values outside [0, 1] are clamped."""
        timing = ObjectTiming()
        timing.set_start_raw(-0.5)
        timing.set_end_raw(3)
        assert (timing.start_raw, timing.end_raw) == (0.0, 1.0)

    def test_progress(self) -> None:
        """Progress is linear inside the window and clamped outside it."""
        timing = ObjectTiming()
        timing.set_start_raw(0.2)
        timing.set_end_raw(0.6)
        assert timing.progress(0.0) == 0.0
        assert timing.progress(0.4) == pytest.approx(0.5)
        assert timing.progress(0.9) == 1.0

    def test_zero_length_window(self) -> None:
        """An empty window steps from 0 to 1 at its start."""
        timing = ObjectTiming()
        timing.set_start_raw(0.5)
        timing.set_end_raw(0.5)
        assert timing.progress(0.4) == 0.0
        assert timing.progress(0.5) == 1.0

    def test_easing_applied(self) -> None:
        """The easing curve shapes the linear progress."""
        timing = ObjectTiming()
        timing.easing = get_easing("Ease Quad In")
        assert timing.progress(0.5) == pytest.approx(0.25)

    def test_prop_times(self) -> None:
        """Each property gets a clamped sub-window."""
        timing = ObjectTiming(["x-position", "width"])
        assert set(timing.prop_time_map) == {"x-position", "width"}
        timing.set_prop_start("width", 0.5)
        timing.set_prop_end("width", 2.0)
        times = timing.get_prop_times("width")
        assert (times.start, times.end) == (0.5, 1.0)
        assert timing.get_prop_times("height") is None

    def test_prop_progress(self, row_scopes) -> None:
        """A property animates only inside its sub-window of the peer's span."""
        timing = ObjectTiming(["x-position"])
        timing.set_prop_times("x-position", 0.5, 1.0)
        assert timing.prop_progress(0.25, "x-position", row_scopes[0]) == 0.0
        assert timing.prop_progress(0.75, "x-position", row_scopes[0]) == pytest.approx(0.5)
        assert timing.prop_progress(1.0, "x-position", row_scopes[0]) == 1.0
        # Properties without a sub-window follow the whole span
        assert timing.prop_progress(0.25, "width", row_scopes[0]) == pytest.approx(0.25)

    def test_prop_progress_staggered(self, sales: Dataset, row_scopes) -> None:
        """Sub-windows are relative to each peer's staggered span."""
        timing = ObjectTiming(["x-position"])
        timing.set_prop_times("x-position", 0.5, 1.0)
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        # Row 2 runs from 0.35 to 0.65, so x-position runs from 0.5 to 0.65
        assert timing.prop_progress(0.5, "x-position", row_scopes[2]) == pytest.approx(0.0)
        assert timing.prop_progress(0.575, "x-position", row_scopes[2]) == pytest.approx(0.5)
        assert timing.prop_progress(0.65, "x-position", row_scopes[2]) == pytest.approx(1.0)


class TestNesting:
    """Tests for parent windows in the timing graph."""

    def test_child_follows_parent_window(self, graph: TimingGraph, row_scopes) -> None:
        """A child with the default window spans its parent's window."""
        parent = ObjectTiming(graph=graph)
        child = ObjectTiming(graph=graph)
        child.set_parent(parent)
        parent.set_start_raw(0.2)
        parent.set_end_raw(0.6)
        assert child.start_scaled == pytest.approx(0.2)
        assert child.end_scaled == pytest.approx(0.6)
        assert child.get_peer(row_scopes[0]) == pytest.approx((0.2, 0.4))

    def test_child_raw_window_inside_parent(self, graph: TimingGraph, row_scopes) -> None:
        """A child's raw window is relative to its parent's window."""
        parent = ObjectTiming(graph=graph)
        parent.set_start_raw(0.2)
        parent.set_end_raw(0.6)
        child = ObjectTiming(graph=graph)
        child.set_parent(parent)
        child.set_start_raw(0.5)
        assert child.start_scaled == pytest.approx(0.4)
        start, duration = child.get_peer(row_scopes[0])
        assert start == pytest.approx(0.4)
        assert duration == pytest.approx(0.2)

    def test_parent_write_invalidates_descendants(self, graph: TimingGraph) -> None:
        """Cached child scales are recomputed after an ancestor changes."""
        root = ObjectTiming(graph=graph)
        middle = ObjectTiming(graph=graph)
        leaf = ObjectTiming(graph=graph)
        middle.set_parent(root)
        leaf.set_parent(middle)
        root.set_start_raw(0.5)
        assert leaf.start_scaled == pytest.approx(0.5)
        root.set_start_raw(0.0)
        assert leaf.start_scaled == pytest.approx(0.0)

    def test_reparenting_moves_children(self, graph: TimingGraph) -> None:
        """Setting a new parent removes the child from the old one."""
        first = ObjectTiming(graph=graph)
        second = ObjectTiming(graph=graph)
        child = ObjectTiming(graph=graph)
        child.set_parent(first)
        child.set_parent(second)
        assert first.children == []
        assert second.children == [child]
        child.set_parent(None)
        assert child.parent is None

    def test_descendants_preorder(self, graph: TimingGraph) -> None:
        """Descendants are listed depth first, ancestors bottom up."""
        root, a, b, a1 = (ObjectTiming(graph=graph) for _ in range(4))
        a.set_parent(root)
        b.set_parent(root)
        a1.set_parent(a)
        assert graph.descendants(root.index) == [a.index, a1.index, b.index]
        assert list(graph.ancestors(a1.index)) == [a.index, root.index]

    def test_remove_detaches_and_drops(self, graph: TimingGraph) -> None:
        """Removed timings leave the graph and free their parent and children."""
        root, middle, leaf = (ObjectTiming(graph=graph) for _ in range(3))
        middle.set_parent(root)
        leaf.set_parent(middle)
        graph.remove(middle.index)
        assert len(graph) == 2
        assert list(graph) == [root, leaf]
        assert root.children == []
        assert leaf.parent is None
        with pytest.raises(KeyError):
            graph[middle.index]
        # Indices of the remaining timings are unchanged
        assert graph[leaf.index] is leaf
        graph.remove(middle.index)
        assert len(graph) == 2

    def test_cycle_rejected(self, graph: TimingGraph) -> None:
        """Nesting a timing under its own descendant fails and changes nothing."""
        parent = ObjectTiming(graph=graph)
        child = ObjectTiming(graph=graph)
        child.set_parent(parent)
        with pytest.raises(TimingCycleError):
            parent.set_parent(child)
        assert parent.parent is None

    def test_self_parent_rejected(self) -> None:
        """A timing cannot be its own parent."""
        timing = ObjectTiming()
        with pytest.raises(TimingCycleError):
            timing.set_parent(timing)

    def test_different_graph_rejected(self) -> None:
        """Timings from separate graphs cannot be nested."""
        with pytest.raises(ValueError, match="different timing graph"):
            ObjectTiming().set_parent(ObjectTiming())

    def test_staggered_parent_grants_default_duration(self, graph: TimingGraph, sales, row_scopes) -> None:
        """A child of a staggered parent spans only one peer's share."""
        parent = ObjectTiming(graph=graph)
        parent.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        child = ObjectTiming(graph=graph)
        child.set_parent(parent)
        assert child.start_scaled == pytest.approx(0.0)
        assert child.end_scaled == pytest.approx(0.3)


class TestSequencing:
    """Tests for stagger and speed sequencing."""

    def test_stagger_numeric(self, sales: Dataset, row_scopes) -> None:
        """Numeric stagger spreads the peers' delays by value."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        assert timing.sequence_type is SequenceType.STAGGER
        assert timing.sequence_field == "revenue"
        assert timing.sequence_aggr == "MEAN"
        assert timing.sequence_default_duration == pytest.approx(0.3)
        delays = [timing.get_delay(s) for s in row_scopes]
        assert delays == pytest.approx([0.0, 0.175, 0.35, 0.525, 0.7])
        assert all(timing.get_duration(s) == pytest.approx(0.3) for s in row_scopes)
        assert timing.get_peer(row_scopes[2]) == pytest.approx((0.35, 0.3))
        assert len(timing.peer_groups) == 5
        assert all(g.duration == pytest.approx(0.3) for g in timing.peer_groups)

    def test_stagger_fits_window(self, sales: Dataset, row_scopes) -> None:
        """Every peer finishes by the end of the edge."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        for scope in row_scopes:
            start, duration = timing.get_peer(scope)
            assert start + duration <= 1.0 + 1e-9

    def test_speed_numeric(self, sales: Dataset, row_scopes) -> None:
        """Numeric speed scales each peer's duration by value."""
        timing = ObjectTiming()
        timing.create_sequencing("speed", "revenue", dataset=sales, data_scopes=row_scopes)
        durations = [timing.get_duration(s) for s in row_scopes]
        assert durations[0] == pytest.approx(0.3)
        assert durations[-1] == pytest.approx(1.0)
        assert all(timing.get_delay(s) == 0.0 for s in row_scopes)

    def test_stagger_categorical(self, sales: Dataset, row_scopes) -> None:
        """Categories keep data source order and are evenly spaced."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "region", dataset=sales, data_scopes=row_scopes)
        assert timing.sequence_aggr == "DATA SRC"
        assert timing.sequence_default_duration == pytest.approx(1 / 3)
        by_row = [timing.get_delay(s) for s in row_scopes]
        assert by_row == pytest.approx([0.0, 0.0, 1 / 3, 1 / 3, 2 / 3])

    def test_peer_groups(self, sales: Dataset, row_scopes) -> None:
        """Peer groups are listed in reverse value order with their counts."""
        timing = ObjectTiming()
        assert [g.label for g in timing.peer_groups] == ["All Peer Shapes"]
        timing.create_sequencing("stagger", "region", dataset=sales, data_scopes=row_scopes)
        assert [g.label for g in timing.peer_groups] == [
            "region = North",
            "region = West",
            "region = East",
        ]
        assert [g.count for g in timing.peer_groups] == [1, 2, 2]

    def test_all_is_idempotent(self, sales: Dataset, row_scopes) -> None:
        """Switching to all sequencing twice gives the same state."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        timing.create_sequencing("all")
        groups = list(timing.peer_groups)
        timing.create_sequencing("all")
        assert timing.peer_groups == groups
        assert [g.label for g in groups] == ["All Peer Shapes"]
        assert timing.sequence_type is SequenceType.ALL
        assert timing.sequence_field is None
        assert timing.get_peer(row_scopes[3]) == pytest.approx((0.0, 1.0))

    def test_unknown_field_leaves_state(self, sales: Dataset, row_scopes) -> None:
        """A failed sequencing keeps the previous configuration."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        with pytest.raises(UnsupportedSequencingField):
            timing.create_sequencing("speed", "profit", dataset=sales, data_scopes=row_scopes)
        assert timing.sequence_type is SequenceType.STAGGER
        assert timing.sequence_field == "revenue"

    def test_no_dataset(self) -> None:
        """Field sequencing needs a dataset."""
        with pytest.raises(UnsupportedSequencingField):
            ObjectTiming().create_sequencing("stagger", "revenue")

    def test_no_peer_data(self, sales: Dataset) -> None:
        """Scopes that match no rows cannot be sequenced."""
        scopes = [DataScope({"region": "South"}, dataset=sales)]
        with pytest.raises(UnsupportedSequencingField, match="No peer"):
            ObjectTiming().create_sequencing("stagger", "revenue", dataset=sales, data_scopes=scopes)

    def test_unknown_sequence_type(self) -> None:
        """Unknown sequence types raise ValueError."""
        with pytest.raises(ValueError):
            ObjectTiming().create_sequencing("shuffle")

    def test_set_default_duration(self, sales: Dataset, row_scopes) -> None:
        """A new default duration reflows the stagger delays."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        timing.set_default_duration(0.5)
        assert timing.get_delay(row_scopes[-1]) == pytest.approx(0.5)
        assert timing.get_duration(row_scopes[0]) == pytest.approx(0.5)
        with pytest.raises(ValueError):
            timing.set_default_duration(0)

    def test_set_aggregation(self, sales: Dataset) -> None:
        """Changing the aggregation re-scales grouped peers."""
        scopes = [DataScope({"region": r}, dataset=sales) for r in ("East", "West", "North")]
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=scopes)
        # MEAN: East 15, West 35, North 50 over three groups
        assert timing.get_delay(scopes[1]) == pytest.approx(20 / 35 * 2 / 3)
        timing.set_aggregation("SUM")
        # SUM: East 30, West 70, North 50
        assert timing.sequence_aggr == "SUM"
        assert timing.get_delay(scopes[1]) == pytest.approx(2 / 3)
        with pytest.raises(ValueError, match="not valid"):
            timing.set_aggregation("A→Z")

    def test_aggregation_without_sequencing_is_noop(self) -> None:
        """Aggregation and reverse edits need a sequencing field."""
        timing = ObjectTiming()
        timing.set_aggregation("SUM")
        timing.toggle_is_reverse()
        assert timing.sequence_aggr is None
        assert not timing.sequence_is_reverse

    def test_toggle_is_reverse(self, sales: Dataset, row_scopes) -> None:
        """Reversing flips the order of the stagger delays."""
        timing = ObjectTiming()
        timing.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        timing.toggle_is_reverse()
        assert timing.sequence_is_reverse
        assert timing.get_delay(row_scopes[0]) == pytest.approx(0.7)
        assert timing.get_delay(row_scopes[-1]) == pytest.approx(0.0)

    def test_peer_progress_nested(self, graph: TimingGraph, sales: Dataset, row_scopes) -> None:
        """Peer windows are placed inside the parent's window."""
        parent = ObjectTiming(graph=graph)
        parent.set_end_raw(0.5)
        child = ObjectTiming(graph=graph)
        child.set_parent(parent)
        child.create_sequencing("stagger", "revenue", dataset=sales, data_scopes=row_scopes)
        # Row 2 starts at 0.35 and lasts 0.3 of the parent's half
        assert child.get_peer(row_scopes[2]) == pytest.approx((0.175, 0.15))
        assert child.peer_progress(0.25, row_scopes[2]) == pytest.approx(0.5)


class TestDecorationTiming:
    """Tests for axis and legend timings."""

    def test_progress(self) -> None:
        """Progress runs linearly across the decoration's window."""
        timing = DecorationTiming()
        timing.set_start_raw(0.5)
        assert timing.total_duration == pytest.approx(0.5)
        assert timing.progress(0.25) == 0.0
        assert timing.progress(0.75) == pytest.approx(0.5)
        assert timing.progress(1.0) == 1.0

    def test_clamped(self) -> None:
        """Raw values are clamped to [0, 1]."""
        timing = DecorationTiming()
        timing.set_end_raw(2)
        assert timing.end_raw == 1.0
