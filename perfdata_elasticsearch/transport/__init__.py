from .pool import Host, HostPool
from .transport import Response, Transport, node_factory
