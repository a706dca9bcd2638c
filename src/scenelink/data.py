"""Datasets, data scopes and the grouping helpers used for peer sequencing."""

import csv
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Self

import numpy as np

logger = logging.getLogger(__name__)

# Column every table row carries as its stable identity
ROW_ID = "Row_ID"

NUMERIC_TYPES = frozenset({"number", "integer"})
CATEGORICAL_TYPES = frozenset({"string", "boolean"})
SEQUENCEABLE_TYPES = NUMERIC_TYPES | CATEGORICAL_TYPES | {"date"}

AGGREGATORS: dict[str, Callable[[np.ndarray], Any]] = {
    "MEAN": np.mean,
    "SUM": np.sum,
    "MEDIAN": np.median,
    "MAX": np.max,
    "MIN": np.min,
}

ORDER_AZ = "A→Z"
ORDER_DATA_SOURCE = "DATA SRC"
ORDER_LIST = [ORDER_AZ, ORDER_DATA_SOURCE]


@dataclass
class FieldInfo:
    """Summary of a single dataset column."""

    field: str
    type: str
    min: Any = None
    max: Any = None
    unique: dict[Any, int] = field(default_factory=dict)

    @property
    def distinct(self) -> int:
        """Number of distinct values in the column."""
        return len(self.unique)


def match_filters(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """Return True if the row satisfies every filter.

    A filter value that is a list or tuple matches any of its members.
    """
    for column, expected in filters.items():
        if isinstance(expected, (list, tuple)):
            if row.get(column) not in expected:
                return False
        elif row.get(column) != expected:
            return False
    return True


def _infer_type(values: Sequence[Any]) -> str:
    present = [v for v in values if v is not None]
    if not present:
        return "string"
    if all(isinstance(v, bool) for v in present):
        return "boolean"
    if all(isinstance(v, (datetime, date)) for v in present):
        return "date"
    if all(isinstance(v, int) and not isinstance(v, bool) for v in present):
        return "integer"
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return "number"
    return "string"


def summarize_column(column: str, values: Sequence[Any]) -> FieldInfo:
    """Build a FieldInfo for a column of raw values."""
    field_type = _infer_type(values)
    present = [v for v in values if v is not None]
    info = FieldInfo(field=column, type=field_type, unique=dict(Counter(present)))
    if present and field_type in NUMERIC_TYPES:
        array = np.asarray(present, dtype=float)
        info.min = float(array.min())
        info.max = float(array.max())
    elif present and field_type == "date":
        info.min = min(present)
        info.max = max(present)
    return info


def _parse_csv_value(raw: str) -> Any:
    text = raw.strip()
    if text == "":
        return None
    lowered = text.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


class Dataset:
    """A table of rows plus a per-column summary.

    Every row carries a ``Row_ID`` value; rows without one are numbered in
    table order.
    """

    def __init__(
        self,
        table: Iterable[Mapping[str, Any]],
        columns: Sequence[str] | None = None,
        summary: Sequence[FieldInfo] | None = None,
        dataset_name: str = "Data File",
        dataset_id: str | None = None,
    ) -> None:
        self.table: list[dict[str, Any]] = []
        for index, row in enumerate(table):
            record = dict(row)
            record.setdefault(ROW_ID, index)
            self.table.append(record)

        if columns is None:
            seen: dict[str, None] = {}
            for row in self.table:
                seen.update(dict.fromkeys(row))
            columns = list(seen)
        self.columns = list(columns)

        if summary is None:
            summary = [
                summarize_column(col, [row.get(col) for row in self.table])
                for col in self.columns
            ]
        self.summary = list(summary)
        self.dataset_name = dataset_name
        self.dataset_id = dataset_id if dataset_id is not None else f"{dataset_name}-0"

    def __len__(self) -> int:
        return len(self.table)

    def __repr__(self) -> str:
        return f"Dataset({self.dataset_id!r}, rows={len(self.table)}, columns={self.columns})"

    def get_tuples(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Return the rows matching all filters, in table order."""
        return [row for row in self.table if match_filters(row, filters)]

    def get_info(self, column: str) -> FieldInfo:
        """Return the summary for a column.

        Raises:
            KeyError: If the column is not part of this dataset.

        """
        for info in self.summary:
            if info.field == column:
                return info
        raise KeyError(f"Column '{column}' not found in dataset '{self.dataset_id}'")

    @classmethod
    def from_json(cls, data: Mapping[str, Any], dataset_id: str, dataset_name: str) -> Self:
        """Create a Dataset from a ``{table, columns, summary}`` mapping.

        Raises:
            ValueError: If any of the three attributes is missing.

        """
        if not all(key in data for key in ("table", "columns", "summary")):
            raise ValueError("Error loading dataset. Missing attributes.")
        summary = []
        for column, entry in zip(data["columns"], data["summary"], strict=False):
            if isinstance(entry, FieldInfo):
                summary.append(entry)
                continue
            summary.append(
                FieldInfo(
                    field=entry.get("field", column),
                    type=entry.get("type", "string"),
                    min=entry.get("min"),
                    max=entry.get("max"),
                    unique=dict(entry.get("unique", {})),
                ),
            )
        return cls(data["table"], data["columns"], summary, dataset_name, dataset_id)

    @classmethod
    def from_csv(cls, csv_path: str | Path, dataset_id: str | None = None) -> Self:
        """Load a dataset from a CSV file with a header row.

        Numbers, integers and ``true``/``false`` cells are converted; empty
        cells become None.

        Raises:
            ValueError: If the file has no header row.
            FileNotFoundError: If the CSV file doesn't exist.

        """
        csv_path = Path(csv_path)
        with csv_path.open(encoding="utf-8") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                msg = "CSV file has no header row"
                raise ValueError(msg)
            columns = list(reader.fieldnames)
            rows = [{k: _parse_csv_value(v or "") for k, v in row.items()} for row in reader]
        if ROW_ID not in columns:
            columns.append(ROW_ID)
        name = csv_path.stem
        return cls(rows, columns, dataset_name=name, dataset_id=dataset_id or f"{name}-0")


class DataScope:
    """The local and inherited filters binding one graphical instance to data.

    The resolved tuples and the canonical ``filter_string``/``tuple_string``
    identities are recomputed whenever the filters change.
    """

    def __init__(
        self,
        filters: Mapping[str, Any] | None = None,
        inherited_filters: Mapping[str, Any] | None = None,
        dataset: Dataset | None = None,
    ) -> None:
        self.filters: dict[str, Any] = dict(filters or {})
        self.inherited_filters: dict[str, Any] = dict(inherited_filters or {})
        self.dataset = dataset
        self.tuples: list[dict[str, Any]] = []
        self.filter_string = ""
        self.tuple_string = ""
        self.reset_tuples()
        self.reset_strings()

    def __repr__(self) -> str:
        return f"DataScope({self.filter_string!r}, tuples={len(self.tuples)})"

    @property
    def dataset_id(self) -> str:
        return self.dataset.dataset_id if self.dataset is not None else ""

    @property
    def all_filters(self) -> dict[str, Any]:
        """Local filters overlaid with inherited ones."""
        return {**self.filters, **self.inherited_filters}

    @property
    def tuple_ids(self) -> frozenset[Any]:
        return frozenset(t.get(ROW_ID) for t in self.tuples)

    def reset_tuples(self) -> None:
        self.tuples = self.dataset.get_tuples(self.all_filters) if self.dataset is not None else []

    def reset_strings(self) -> None:
        all_filters = self.all_filters
        ordered = "|".join(f"{k}=[{_join(all_filters[k])}]" for k in sorted(all_filters))
        self.filter_string = f"filters={{{ordered}}}"
        ids = sorted((t.get(ROW_ID) for t in self.tuples), key=str)
        ordered_ids = "|".join(f"${ROW_ID}=[{i}]" for i in ids)
        self.tuple_string = f"data=[{self.dataset_id}] tuples={{{ordered_ids}}}"

    def set_filters(self, filters: Mapping[str, Any]) -> None:
        """Replace the local filters and refresh tuples and identities."""
        self.filters = dict(filters)
        self.reset_tuples()
        self.reset_strings()

    def inherit_from(self, other: "DataScope") -> None:
        """Copy and inherit all filters from another scope."""
        self.inherited_filters.update(other.all_filters)
        self.reset_tuples()
        self.reset_strings()

    def to_dict(self) -> dict[str, Any]:
        return {"filters": dict(self.filters), "inheritedFilters": dict(self.inherited_filters)}


def _join(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def as_number(value: Any) -> float:
    """Convert numbers and dates to a float usable by a linear scale."""
    if isinstance(value, datetime):
        return value.timestamp() * 1000.0
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).timestamp() * 1000.0
    return float(value)


def compute_aggregate(values: Iterable[Any], aggr: str) -> float | None:
    """Aggregate numeric values with MEAN, SUM, MEDIAN, MAX or MIN.

    Returns None for an empty input.

    Raises:
        KeyError: If the aggregation name is unknown.

    """
    array = np.asarray([v for v in values if v is not None], dtype=float)
    func = AGGREGATORS[aggr]
    if array.size == 0:
        return None
    return float(func(array))


def format_value(value: Any, field_type: str) -> str:
    """Format a value for peer group labels."""
    if value is None:
        return ""
    if field_type in NUMERIC_TYPES:
        return f"{value:g}"
    if field_type == "date":
        if isinstance(value, (int, float)):
            value = datetime.fromtimestamp(value / 1000.0)
        return value.strftime("%B %d, %Y")
    return str(value)


@dataclass
class PeerGroupValue:
    """One data scope's contribution to a grouping."""

    value: Any
    count: int
    bind_value: Any


@dataclass
class Grouping:
    """Data scopes grouped by the value of a sequencing field."""

    groups: list[PeerGroupValue] = field(default_factory=list)
    min: Any = None
    max: Any = None
    # Ordered value -> number of scopes sharing it
    unique: dict[Any, int] = field(default_factory=dict)
    # Bind column value -> group value
    bind: dict[Any, Any] = field(default_factory=dict)


def _order_categorical(
    groups: list[PeerGroupValue],
    info: FieldInfo,
    order: str,
    reverse: bool,
) -> list[PeerGroupValue]:
    if order == ORDER_AZ:
        return sorted(groups, key=lambda g: str(g.value).lower(), reverse=not reverse)
    keys = list(info.unique)
    if reverse:
        keys.reverse()
    position = {key: i for i, key in enumerate(keys)}
    return sorted(groups, key=lambda g: position.get(g.value, len(position)))


def compute_grouping(
    column: str,
    info: FieldInfo,
    aggr: str,
    reverse: bool,
    bind_column: str | None,
    data_scopes: Iterable[DataScope],
) -> Grouping:
    """Group data scopes by the (aggregated) value of a column.

    Numeric columns are aggregated per scope with ``aggr``; other columns use
    the value of the scope's first tuple. Scopes without tuples are skipped.
    """
    grouping = Grouping()
    for scope in data_scopes:
        if not scope.tuples:
            continue
        value = scope.tuples[0].get(column)
        if info.type in NUMERIC_TYPES:
            value = compute_aggregate((t.get(column) for t in scope.tuples), aggr)
        if value is None:
            continue
        bind_value = scope.filters.get(bind_column) if bind_column is not None else None
        grouping.groups.append(PeerGroupValue(value, len(scope.tuples), bind_value))

    if info.type in NUMERIC_TYPES or info.type == "date":
        values = [g.value for g in grouping.groups]
        if values:
            grouping.min = min(values)
            grouping.max = max(values)

    if info.type in CATEGORICAL_TYPES:
        grouping.groups = _order_categorical(grouping.groups, info, aggr, reverse)
    else:
        grouping.groups = sorted(grouping.groups, key=lambda g: g.value, reverse=reverse)

    for group in grouping.groups:
        grouping.unique[group.value] = grouping.unique.get(group.value, 0) + 1
        grouping.bind.setdefault(group.bind_value, group.value)
    return grouping


def sequenceable_fields(dataset: Dataset, scopes: Iterable[DataScope]) -> list[FieldInfo]:
    """Columns that can drive sequencing for a set of peers.

    Categorical columns only qualify when each peer's tuples agree on a
    single value.
    """
    scopes = list(scopes)
    result = []
    for info in dataset.summary:
        if info.type not in SEQUENCEABLE_TYPES:
            continue
        if info.type in CATEGORICAL_TYPES:
            uniform = all(len({t.get(info.field) for t in s.tuples}) <= 1 for s in scopes)
            if not uniform:
                continue
        result.append(info)
    return result
