import copy
import logging
from fnmatch import fnmatchcase
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple

from perfdata_elasticsearch.exceptions import DecodeError, HTTPError, TransportError
from perfdata_elasticsearch.model import MetricSample, QueryRequest
from perfdata_elasticsearch.transport import Response, Transport

# documents per page
PAGE_SIZE: int = 2000


def _glob_match(metric: str, pattern: str) -> bool:
    # posix fnmatch also negates a character class with [^...]
    return fnmatchcase(metric, pattern.replace('[^', '[!'))


def is_included(metric: str, include_list: Iterable[str]) -> bool:
    patterns: List[str] = list(include_list)
    # all are included if not set
    if not patterns:
        return True
    return any(_glob_match(metric, pattern) for pattern in patterns)


def is_excluded(metric: str, exclude_list: Iterable[str]) -> bool:
    patterns: List[str] = list(exclude_list)
    if not patterns:
        return False
    return any(_glob_match(metric, pattern) for pattern in patterns)


class MetricFilter(object):
    """include/exclude glob lists of one request, with the verdict cached per label"""

    def __init__(self, include_list: Iterable[str] = (), exclude_list: Iterable[str] = ()):
        self.include_list: Tuple[str, ...] = tuple(include_list)
        self.exclude_list: Tuple[str, ...] = tuple(exclude_list)
        self._verdicts: Dict[str, bool] = {}

    @classmethod
    def from_request(cls, request: QueryRequest) -> 'MetricFilter':
        return cls(request.include_metrics, request.exclude_metrics)

    def __call__(self, metric: str) -> bool:
        verdict: Optional[bool] = self._verdicts.get(metric)
        if verdict is None:
            verdict = is_included(metric, self.include_list) and not is_excluded(metric, self.exclude_list)
            self._verdicts[metric] = verdict
        return verdict


class BaseQueryBuilder(object):
    # writer name used in the configuration
    key: Optional[str] = None
    # field used by the range filter
    range_field: str = '@timestamp'
    sort_field: str = '@timestamp'
    page_size: int = PAGE_SIZE

    def _match_clauses(self, request: QueryRequest) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _extra_body(self) -> Dict[str, Any]:
        return {}

    def build_query(self, request: QueryRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            'size': self.page_size,
            'sort': [{self.sort_field: 'asc'}],
            'query': {
                'bool': {
                    'must': self._match_clauses(request),
                    'filter': {
                        'range': {self.range_field: {'gte': request.start, 'lte': 'now'}}
                    },
                }
            },
        }
        body.update(self._extra_body())
        return body

    def index_name_for(self, request: QueryRequest) -> str:
        raise NotImplementedError

    def hit_timestamp(self, hit: Dict[str, Any]) -> Optional[int]:
        raise NotImplementedError

    def extract_metrics(
            self, hit: Dict[str, Any], metric_filter: MetricFilter
    ) -> Generator[Tuple[str, MetricSample], None, None]:
        """yield (label, sample) for every metric of the hit that passes the filter"""
        raise NotImplementedError

    @staticmethod
    def with_cursor(body: Dict[str, Any], cursor: Any) -> Dict[str, Any]:
        body = copy.copy(body)
        if cursor is None:
            body.pop('search_after', None)
        else:
            body['search_after'] = [cursor]
        return body

    @staticmethod
    def cursor_of(hit: Dict[str, Any]) -> Any:
        sort_values: Optional[List[Any]] = hit.get('sort')
        if not sort_values:
            return None
        return sort_values[0]


def _error_reason(response: Response) -> str:
    try:
        payload: Any = response.json()
    except DecodeError:
        return response.text.strip()[:500]
    error: Any = payload.get('error') if isinstance(payload, dict) else None
    if isinstance(error, dict):
        error_type: str = error.get('type', '')
        reason: str = error.get('reason', '')
        return f'{error_type}: {reason}' if error_type and reason else error_type or reason
    return str(error) if error else ''


def search(transport: Transport, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
    response: Response = transport.send('POST', f'/{index}/_search', body=body)
    if not response.ok:
        raise HTTPError(response.status, _error_reason(response))

    payload: Any = response.json()
    if not isinstance(payload, dict):
        raise DecodeError(f'unexpected search response from {response.host_url}: {type(payload).__name__}')
    if 'error' in payload:
        raise HTTPError(response.status, _error_reason(response))
    return payload


def status(transport: Transport) -> Dict[str, Any]:
    """status tests connectivity to the cluster"""
    try:
        response: Response = transport.send('GET', '/')
    except TransportError as e:
        logging.warning(f'status check failed: {e}')
        return {'output': f'Connection error: {e}', 'error': True}
    if not response.ok:
        return {'output': f'HTTP error: {response.status} - {_error_reason(response)}', 'error': True}
    return {'output': response.text}
