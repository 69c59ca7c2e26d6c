import dataclasses
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

from elastic_transport import BaseNode, HttpHeaders, Urllib3HttpNode
from elastic_transport.client_utils import basic_auth_to_header
from elasticsearch.exceptions import ConnectionError as EsConnectionError, ConnectionTimeout, SerializationError
from elasticsearch.serializer import JsonSerializer

from perfdata_elasticsearch.exceptions import ConfigurationError, DecodeError, NetworkError, NoHostReachable
from perfdata_elasticsearch.transport.pool import Host, HostPool

NodeFactory = Callable[[Host], BaseNode]

DEFAULT_HEADERS: Dict[str, str] = {
    'Accept': 'application/json',
    'Content-Type': 'application/json',
}

serializer: JsonSerializer = JsonSerializer()


def node_factory(timeout: float = 10, verify_certs: bool = True) -> NodeFactory:
    if timeout is None or timeout <= 0:
        raise ConfigurationError(f'timeout must be a positive number of seconds, got {timeout!r}')

    def _create(host: Host) -> BaseNode:
        return Urllib3HttpNode(
            dataclasses.replace(
                host.node_config,
                request_timeout=timeout,
                verify_certs=verify_certs,
                ssl_show_warn=verify_certs,
            )
        )
    return _create


class Response(object):
    __slots__ = ('status', 'headers', 'body', 'host_url')

    def __init__(self, status: int, headers: Mapping[str, str], body: bytes, host_url: str):
        self.status: int = status
        self.headers: Mapping[str, str] = headers
        self.body: bytes = body
        self.host_url: str = host_url

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        try:
            return serializer.loads(self.body)
        except SerializationError as e:
            raise DecodeError(f'Failed to decode response from {self.host_url}: {e}') from e


class Transport(object):
    """
    Sends requests to the first usable host of the pool.
    Network failures mark the host unreachable and the request is retried on
    the next host, HTTP error statuses are handed back to the caller untouched.
    """

    def __init__(
            self,
            host_pool: HostPool,
            create_node: NodeFactory,
            retries: int = 1,
            headers: Optional[Dict[str, str]] = None,
    ):
        if not len(host_pool):
            raise ConfigurationError('host pool is empty')
        self.host_pool: HostPool = host_pool
        self._create_node: NodeFactory = create_node
        self._nodes: Dict[str, BaseNode] = {}
        self._lock: threading.RLock = threading.RLock()
        self.headers: Dict[str, str] = dict(DEFAULT_HEADERS)
        self.headers.update(headers or {})
        self._basic_auth: Optional[str] = None
        self.retries = retries

    @property
    def retries(self) -> int:
        return self._retries

    @retries.setter
    def retries(self, n: int) -> None:
        if n < 0:
            raise ConfigurationError('Retries must be a positive integer')
        self._retries: int = n

    def set_header(self, name: str, value: str) -> 'Transport':
        self.headers[name] = value
        return self

    def set_basic_auth(self, user: str, password: str = '') -> 'Transport':
        self._basic_auth = basic_auth_to_header((user, password))
        return self

    def _node(self, host: Host) -> BaseNode:
        node: Optional[BaseNode] = self._nodes.get(host.url)
        if node is None:
            node = self._nodes[host.url] = self._create_node(host)
        return node

    def _prepare_headers(self, headers: Optional[Mapping[str, str]]) -> HttpHeaders:
        prepared: HttpHeaders = HttpHeaders(headers or {})
        for name, value in self.headers.items():
            if name not in prepared:
                prepared[name] = value
        if self._basic_auth is not None and 'authorization' not in prepared:
            prepared['Authorization'] = self._basic_auth
        return prepared

    def _perform(
            self, host: Host, method: str, target: str, body: Optional[bytes], headers: HttpHeaders
    ) -> Response:
        try:
            meta, data = self._node(host).perform_request(method, target, body=body, headers=headers)
        except (EsConnectionError, ConnectionTimeout) as e:
            raise NetworkError(host.url, e) from e
        return Response(meta.status, meta.headers, data or b'', host.url)

    def _probe(self, host: Host) -> int:
        return self._perform(host, 'HEAD', '/', None, self._prepare_headers(None)).status

    def send(
            self,
            method: str,
            path: str,
            body: Any = None,
            headers: Optional[Mapping[str, str]] = None,
            params: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        target: str = path if path.startswith('/') else '/' + path
        if params:
            target = f'{target}?{urlencode(params)}'
        if body is not None and not isinstance(body, bytes):
            body = serializer.dumps(body)
        prepared: HttpHeaders = self._prepare_headers(headers)

        with self._lock:
            for attempt in range(1, self._retries + 1):
                host: Host = self.host_pool.next(self._probe)
                try:
                    response: Response = self._perform(host, method, target, body, prepared)
                except NetworkError as e:
                    logging.warning(f'{method} {target} attempt {attempt}/{self._retries} failed: {e}')
                    self.host_pool.mark_unreachable(host)
                    continue
                self.host_pool.mark_reachable(host)
                return response

        raise NoHostReachable('No host reachable')

    def close(self) -> None:
        with self._lock:
            for node in self._nodes.values():
                node.close()
            self._nodes.clear()
