import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from elastic_transport import ConnectionError as EsConnectionError, ConnectionTimeout

from perfdata_elasticsearch.transport import Response

START = datetime(2025, 6, 30, tzinfo=timezone.utc)


class FakeMeta:
    __test__ = False

    def __init__(self, status, headers=None):
        self.status = status
        self.headers = headers or {}


class FakeNode:
    """answers with the given status, or raises a connection error when status is None"""
    __test__ = False

    def __init__(self, status: Optional[int] = 200, body: bytes = b'{}', timeout: bool = False):
        self.status = status
        self.body = body
        self.timeout = timeout
        self.calls = []
        self.closed = False

    def perform_request(self, method, target, body=None, headers=None, request_timeout=None):
        self.calls.append((method, target, body, headers))
        if self.status is None:
            if self.timeout:
                raise ConnectionTimeout('Connection timed out')
            raise EsConnectionError('Connection refused')
        return FakeMeta(self.status), self.body

    def close(self):
        self.closed = True


class FakeNodes:
    """node factory handing out one FakeNode per host url"""
    __test__ = False

    def __init__(self, nodes: Dict[str, FakeNode]):
        self.nodes = nodes

    def __call__(self, host):
        return self.nodes[host.url]


def json_response(payload: Any, status: int = 200, host_url: str = 'http://es1:9200') -> Response:
    return Response(status, {}, json.dumps(payload).encode('utf-8'), host_url)


def datastream_hit(i: int, perfdata: Dict[str, Any]) -> Dict[str, Any]:
    timestamp = START + timedelta(seconds=i)
    return {
        '_id': str(i),
        '_source': {'@timestamp': timestamp.isoformat(), 'perfdata': perfdata},
        'sort': [int(timestamp.timestamp() * 1000)],
    }


class SearchBackend:
    """
    Serves a fixed list of hits through search_after paging, like the _search
    endpoint does for a timestamp sort. failures maps a request number to a response.
    """
    __test__ = False

    def __init__(self, hits: List[Dict[str, Any]], failures: Optional[Dict[int, Response]] = None):
        self.hits = hits
        self.failures = failures or {}
        self.requests = []

    def send(self, method, path, body=None, headers=None, params=None):
        self.requests.append((method, path, body))
        failure = self.failures.get(len(self.requests))
        if failure is not None:
            return failure
        start = 0
        if 'search_after' in body:
            cursor = body['search_after'][0]
            start = next((i + 1 for i, hit in enumerate(self.hits) if hit['sort'][0] == cursor), len(self.hits))
        page = self.hits[start:start + body['size']]
        return json_response({'took': 1, 'timed_out': False, 'hits': {'hits': page}})
