import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Tuple

from perfdata_elasticsearch.model import MetricSample, QueryRequest

from .base import BaseQueryBuilder, MetricFilter

_LEADING_RE = re.compile(r'^[\s\W_]+')
_SPECIAL_RE = re.compile(r'[^A-Za-z0-9]+')
_UNDERSCORES_RE = re.compile(r'_+')


def normalize_check_command(name: str) -> str:
    """
    Mimic the slug the Icinga 2 ElasticsearchDatastreamWriter puts into the index name.
    Leading whitespace and special characters are trimmed, every other run of
    non alphanumeric characters becomes one underscore, the result is lowercased.
    """
    name = _LEADING_RE.sub('', name)
    name = _SPECIAL_RE.sub('_', name)
    name = _UNDERSCORES_RE.sub('_', name)
    return name.strip('_').lower()


def parse_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if not isinstance(value, str) or not value:
        return None
    text: str = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        date: datetime = datetime.fromisoformat(text)
    except ValueError:
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return int(date.timestamp())


class DatastreamQueryBuilder(BaseQueryBuilder):
    """Documents written by the ElasticsearchDatastreamWriter, perfdata nested in _source"""
    key: str = 'elasticsearchdatastream'

    def _match_clauses(self, request: QueryRequest) -> List[Dict[str, Any]]:
        # a host check has no service part
        if request.is_host_check:
            return [{'term': {'host.name': request.host_name}}]
        return [{'match': {'service.name': f'{request.host_name}!{request.service_name}'}}]

    def index_name_for(self, request: QueryRequest) -> str:
        return f'metrics-icinga2.{normalize_check_command(request.check_command)}-default'

    def hit_timestamp(self, hit: Dict[str, Any]) -> Optional[int]:
        return parse_timestamp((hit.get('_source') or {}).get('@timestamp'))

    def extract_metrics(
            self, hit: Dict[str, Any], metric_filter: MetricFilter
    ) -> Generator[Tuple[str, MetricSample], None, None]:
        perfdata: Any = (hit.get('_source') or {}).get('perfdata') or {}
        if not isinstance(perfdata, dict):
            logging.debug(f'skip perfdata of {hit.get("_id")}: {type(perfdata).__name__}')
            return
        for label, metric in perfdata.items():
            if not metric_filter(label):
                continue
            if not isinstance(metric, dict):
                metric = {}
            yield label, MetricSample(
                value=metric.get('value'),
                warn=metric.get('warn'),
                crit=metric.get('crit'),
                unit=metric.get('unit') or '',
            )
