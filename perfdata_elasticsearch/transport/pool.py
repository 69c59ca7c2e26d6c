import logging
import threading
import time
from typing import Callable, Iterator, List, Optional

from elastic_transport import NodeConfig
from elastic_transport.client_utils import url_to_node_config

from perfdata_elasticsearch.exceptions import ConfigurationError, NetworkError, NoHostReachable


class Host(object):
    """A single cluster node, addressed by its URL"""

    def __init__(self, url: str):
        try:
            self.node_config: NodeConfig = url_to_node_config(url, use_default_ports_for_scheme=True)
        except ValueError as e:
            raise ConfigurationError(f'invalid elasticsearch url: {url!r}: {e}') from e
        self._url: str = url
        self.reachable: bool = True
        self.last_reached_at: Optional[float] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def scheme(self) -> str:
        return self.node_config.scheme

    @property
    def hostname(self) -> str:
        return self.node_config.host

    @property
    def port(self) -> int:
        return self.node_config.port

    @property
    def path_prefix(self) -> str:
        return self.node_config.path_prefix

    def __repr__(self) -> str:
        return f'<Host {self._url} reachable={self.reachable}>'


# A probe sends a liveness request to the host and returns the HTTP status code
Probe = Callable[[Host], int]


class HostPool(object):
    """
    Ordered list of hosts. The configured order is the failover priority.

    Reachability flags live here and are shared by every request going
    through the owning transport, so all access happens under one lock.
    """

    def __init__(self, urls: Optional[List[str]] = None):
        self._hosts: List[Host] = []
        self._lock: threading.RLock = threading.RLock()
        if urls is not None:
            self.configure(urls)

    def configure(self, urls: List[str]) -> 'HostPool':
        hosts: List[Host] = []
        for url in urls:
            url = url.strip().rstrip('/')
            if not url:
                continue
            if '://' not in url:
                # eg 127.0.0.1:9200
                url = 'http://' + url
            hosts.append(Host(url))
        if not hosts:
            raise ConfigurationError('at least one elasticsearch url is required')
        with self._lock:
            self._hosts = hosts
        return self

    def __iter__(self) -> Iterator[Host]:
        return iter(list(self._hosts))

    def __len__(self) -> int:
        return len(self._hosts)

    def __getitem__(self, index: int) -> Host:
        return self._hosts[index]

    def mark_reachable(self, host: Host) -> None:
        with self._lock:
            host.reachable = True
            host.last_reached_at = time.time()

    def mark_unreachable(self, host: Host) -> None:
        with self._lock:
            if host.reachable:
                logging.warning(f'marking {host.url} as unreachable')
            host.reachable = False

    def ping(self, host: Host, probe: Probe) -> bool:
        try:
            return probe(host) == 200
        except NetworkError as e:
            logging.debug(f'ping {host.url} failed: {e}')
            return False

    def next(self, probe: Probe) -> Host:
        with self._lock:
            for index in range(len(self._hosts)):
                if self._hosts[index].reachable:
                    return self._hosts[index]

            for index in range(len(self._hosts)):
                host: Host = self._hosts[index]
                if self.ping(host, probe):
                    logging.info(f'{host.url} is reachable again')
                    self.mark_reachable(host)
                    return host

        raise NoHostReachable()
