from typing import Generator

from prometheus_client.core import GaugeMetricFamily

from perfdata_elasticsearch.model import FetchResult
from perfdata_elasticsearch.transport import HostPool


def collector_up_gauge(metric_name: str, succeeded: bool = True) -> GaugeMetricFamily:
    description = 'Did the {} fetch succeed.'.format(metric_name)
    return GaugeMetricFamily(metric_name + '_up', description, value=int(succeeded))


class HostPoolCollector(object):
    """exposes the reachability flags of a host pool"""
    key: str = 'perfdata_es_host'

    def __init__(self, host_pool: HostPool):
        self.host_pool: HostPool = host_pool

    def collect(self) -> Generator[GaugeMetricFamily, None, None]:
        up: GaugeMetricFamily = GaugeMetricFamily(
            f'{self.key}_reachable', 'Is the elasticsearch host marked reachable', labels=['host']
        )
        last_reached: GaugeMetricFamily = GaugeMetricFamily(
            f'{self.key}_last_reached_timestamp_seconds',
            'When the elasticsearch host last answered',
            labels=['host'],
        )
        for host in self.host_pool:
            up.add_metric([host.url], float(host.reachable))
            if host.last_reached_at is not None:
                last_reached.add_metric([host.url], host.last_reached_at)
        yield up
        yield last_reached


class FetchResultCollector(object):
    key: str = 'perfdata_es_fetch'

    def __init__(self, result: FetchResult):
        self.result: FetchResult = result

    def collect(self) -> Generator[GaugeMetricFamily, None, None]:
        yield GaugeMetricFamily(f'{self.key}_metrics', 'Number of fetched metric sets', value=len(self.result.data))
        errors: GaugeMetricFamily = GaugeMetricFamily(
            f'{self.key}_errors', 'Number of fetch errors', labels=['code']
        )
        counts = {}
        for error in self.result.errors:
            counts[error.code] = counts.get(error.code, 0) + 1
        for code, count in counts.items():
            errors.add_metric([code], count)
        yield errors
        yield collector_up_gauge(self.key, succeeded=not self.result.errors)
