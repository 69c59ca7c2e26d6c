from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from perfdata_elasticsearch.exceptions import ErrorKind, PerfdataError
from perfdata_elasticsearch.utils import parse_duration


@dataclass(frozen=True)
class QueryRequest(object):
    host_name: str
    service_name: str
    check_command: str
    # inclusive lower bound, e.g. 2025-06-30T02:23:03
    start: str
    is_host_check: bool = False
    include_metrics: Tuple[str, ...] = ()
    exclude_metrics: Tuple[str, ...] = ()

    @classmethod
    def from_lookback(
            cls,
            host_name: str,
            service_name: str,
            check_command: str,
            duration: str,
            is_host_check: bool = False,
            include_metrics: Sequence[str] = (),
            exclude_metrics: Sequence[str] = (),
            now: Optional[datetime] = None,
    ) -> 'QueryRequest':
        return cls(
            host_name=host_name,
            service_name=service_name,
            check_command=check_command,
            start=parse_duration(duration, now=now),
            is_host_check=is_host_check,
            include_metrics=tuple(include_metrics),
            exclude_metrics=tuple(exclude_metrics),
        )


class MetricSample(NamedTuple):
    value: Any = None
    warn: Any = None
    crit: Any = None
    unit: Optional[str] = None


class _MetricColumns(object):
    __slots__ = ('timestamps', 'values', 'warnings', 'criticals', 'unit')

    def __init__(self):
        self.timestamps: List[int] = []
        self.values: List[Any] = []
        self.warnings: List[Any] = []
        self.criticals: List[Any] = []
        self.unit: str = ''


class MetricAccumulator(object):
    """Collects aligned columns per metric label while the pages come in"""

    def __init__(self):
        self._columns: 'OrderedDict[str, _MetricColumns]' = OrderedDict()

    def add(self, label: str, timestamp: int, sample: MetricSample) -> None:
        columns: _MetricColumns = self._columns.get(label)
        if columns is None:
            columns = self._columns[label] = _MetricColumns()
        columns.timestamps.append(timestamp)
        columns.values.append(sample.value)
        columns.warnings.append(sample.warn)
        columns.criticals.append(sample.crit)
        if sample.unit:
            columns.unit = sample.unit

    def labels(self) -> List[str]:
        return list(self._columns)

    def columns(self, label: str) -> _MetricColumns:
        return self._columns[label]

    def __len__(self) -> int:
        return len(self._columns)


@dataclass
class MetricSet(object):
    label: str
    unit: str = ''
    timestamps: List[int] = field(default_factory=list)
    series: 'OrderedDict[str, List[Any]]' = field(default_factory=OrderedDict)

    def add_series(self, name: str, values: List[Any]) -> None:
        if len(values) != len(self.timestamps):
            raise ValueError(
                f'series {name} of {self.label} has {len(values)} values for {len(self.timestamps)} timestamps'
            )
        self.series[name] = values

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.label,
            'unit': self.unit,
            'timestamps': self.timestamps,
            'series': [{'name': name, 'values': values} for name, values in self.series.items()],
        }


@dataclass(frozen=True)
class FetchError(object):
    code: str
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: PerfdataError) -> 'FetchError':
        return cls(code=exc.code, kind=exc.kind, message=str(exc))


@dataclass
class FetchResult(object):
    data: List[MetricSet] = field(default_factory=list)
    errors: List[FetchError] = field(default_factory=list)

    def add_error(self, error: FetchError) -> None:
        self.errors.append(error)

    def is_empty(self) -> bool:
        return not self.data

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': [metric_set.to_dict() for metric_set in self.data],
            'errors': [error.message for error in self.errors],
        }
