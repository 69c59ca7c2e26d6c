from typing import Any, Dict, Generator, List, Optional, Tuple

from perfdata_elasticsearch.model import MetricSample, QueryRequest

from .base import BaseQueryBuilder, MetricFilter

PERFDATA_PREFIX: str = 'check_result.perfdata.'
METRIC_ATTRIBUTES: Tuple[str, ...] = ('value', 'unit', 'warn', 'crit')
DEFAULT_INDEX: str = 'icinga2-*'


def _last(values: Any) -> Any:
    # projected fields always come back as lists
    if isinstance(values, list):
        return values[-1] if values else None
    return values


class ClassicQueryBuilder(BaseQueryBuilder):
    """
    Documents written by the ElasticsearchWriter.

    Only the perfdata fields are projected, so a hit looks like:
        "@timestamp": ["1751293383.713"],
        "check_result.perfdata./.value": [14774000000],
        "check_result.perfdata./.unit": ["bytes"],
        "check_result.perfdata./.unit.keyword": ["bytes"],
        "check_result.perfdata./.warn": [80176000000],
        "check_result.perfdata./.crit": [90198000000]
    """
    key: str = 'elasticsearch'
    range_field: str = 'timestamp'

    def __init__(self, index: str = DEFAULT_INDEX):
        self.index: str = index or DEFAULT_INDEX

    def _match_clauses(self, request: QueryRequest) -> List[Dict[str, Any]]:
        clauses: List[Dict[str, Any]] = [{'term': {'host.keyword': request.host_name}}]
        if not request.is_host_check:
            clauses.append({'term': {'service.keyword': request.service_name}})
        clauses.append({'term': {'check_command.keyword': request.check_command}})
        return clauses

    def _extra_body(self) -> Dict[str, Any]:
        return {
            '_source': False,
            'fields': [
                PERFDATA_PREFIX + '*',
                {'field': '@timestamp', 'format': 'epoch_second'},
            ],
        }

    def index_name_for(self, request: QueryRequest) -> str:
        return self.index

    def hit_timestamp(self, hit: Dict[str, Any]) -> Optional[int]:
        timestamp: Any = _last((hit.get('fields') or {}).get('@timestamp'))
        try:
            return int(float(timestamp))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def metric_labels(fields: Dict[str, Any]) -> List[str]:
        """labels of all datasets (pl, rta, ...) in the hit, in field order"""
        labels: Dict[str, None] = {}
        for key in fields:
            if not key.startswith(PERFDATA_PREFIX):
                continue
            label, _, attribute = key[len(PERFDATA_PREFIX):].rpartition('.')
            if label and attribute in METRIC_ATTRIBUTES:
                labels[label] = None
        return list(labels)

    def extract_metrics(
            self, hit: Dict[str, Any], metric_filter: MetricFilter
    ) -> Generator[Tuple[str, MetricSample], None, None]:
        fields: Dict[str, Any] = hit.get('fields') or {}
        for label in self.metric_labels(fields):
            if not metric_filter(label):
                continue
            prefix: str = f'{PERFDATA_PREFIX}{label}.'
            yield label, MetricSample(
                value=_last(fields.get(prefix + 'value')),
                warn=_last(fields.get(prefix + 'warn')),
                crit=_last(fields.get(prefix + 'crit')),
                unit=_last(fields.get(prefix + 'unit')) or '',
            )
