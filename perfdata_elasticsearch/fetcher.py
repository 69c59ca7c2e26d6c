import logging
from typing import Any, Dict, List, Optional

from perfdata_elasticsearch.client import BaseQueryBuilder, MetricFilter, query_builder_class, search
from perfdata_elasticsearch.config import EsConfig
from perfdata_elasticsearch.exceptions import DecodeError, HTTPError, TransportError
from perfdata_elasticsearch.model import FetchError, FetchResult, MetricAccumulator, MetricSet, QueryRequest
from perfdata_elasticsearch.transport import HostPool, Transport, node_factory


def assemble(accumulator: MetricAccumulator, result: Optional[FetchResult] = None) -> FetchResult:
    """fold the accumulated columns into one MetricSet per label, in first seen order"""
    if result is None:
        result = FetchResult()
    for label in accumulator.labels():
        columns = accumulator.columns(label)
        metric_set: MetricSet = MetricSet(label=label, unit=columns.unit, timestamps=columns.timestamps)
        metric_set.add_series('value', columns.values)
        if any(value is not None for value in columns.warnings):
            metric_set.add_series('warning', columns.warnings)
        if any(value is not None for value in columns.criticals):
            metric_set.add_series('critical', columns.criticals)
        result.data.append(metric_set)
    return result


class MetricsFetcher(object):
    def __init__(self, transport: Transport, query_builder: BaseQueryBuilder):
        self.transport: Transport = transport
        self.query_builder: BaseQueryBuilder = query_builder

    @classmethod
    def from_config(cls, config: EsConfig) -> 'MetricsFetcher':
        transport: Transport = Transport(
            HostPool(config.urls),
            node_factory(timeout=config.timeout, verify_certs=config.verify_certs),
            retries=config.retries,
        )
        if config.username:
            transport.set_basic_auth(config.username, config.password)

        builder_class = query_builder_class(config.writer)
        if config.writer == 'elasticsearch':
            query_builder: BaseQueryBuilder = builder_class(index=config.index)
        else:
            query_builder = builder_class()
        return cls(transport, query_builder)

    def _fetch_page(
            self, index: str, body: Dict[str, Any], result: FetchResult
    ) -> Optional[List[Dict[str, Any]]]:
        """hits of one page, None when the error recorded in result must stop the paging"""
        try:
            response: Dict[str, Any] = search(self.transport, index, body)
        except (TransportError, HTTPError) as e:
            logging.warning(f'fetching {index} error: {e}')
            result.add_error(FetchError.from_exception(e))
            return None
        except DecodeError as e:
            logging.warning(f'fetching {index} decode error: {e}')
            result.add_error(FetchError.from_exception(e))
            return []
        hits: Any = response.get('hits') or {}
        if isinstance(hits, dict):
            hits = hits.get('hits') or []
        if not isinstance(hits, list):
            e = DecodeError(f'unexpected hits in search response of {index}: {type(hits).__name__}')
            logging.warning(f'fetching {index} decode error: {e}')
            result.add_error(FetchError.from_exception(e))
            return []
        return hits

    def fetch(self, request: QueryRequest) -> FetchResult:
        result: FetchResult = FetchResult()
        accumulator: MetricAccumulator = MetricAccumulator()
        metric_filter: MetricFilter = MetricFilter.from_request(request)

        index: str = self.query_builder.index_name_for(request)
        query: Dict[str, Any] = self.query_builder.build_query(request)
        cursor: Any = None
        page: int = 0

        while True:
            page += 1
            body: Dict[str, Any] = self.query_builder.with_cursor(query, cursor)
            hits: Optional[List[Dict[str, Any]]] = self._fetch_page(index, body, result)
            if hits is None:
                break
            logging.debug(f'{index} page {page}: {len(hits)} hits')
            if not hits:
                break

            for hit in hits:
                timestamp: Optional[int] = self.query_builder.hit_timestamp(hit)
                if timestamp is None:
                    logging.warning(f'skip hit {hit.get("_id")} of {index} without a valid timestamp')
                    continue
                for label, sample in self.query_builder.extract_metrics(hit, metric_filter):
                    accumulator.add(label, timestamp, sample)

            cursor = self.query_builder.cursor_of(hits[-1])
            if cursor is None:
                logging.warning(f'{index} page {page}: last hit has no sort value, stop paging')
                result.add_error(
                    FetchError.from_exception(DecodeError(f'{index}: hit without sort value, results are incomplete'))
                )
                break

        logging.info(
            f'fetched {len(accumulator)} metrics of {request.host_name}!{request.service_name} '
            f'from {index} in {page} requests'
        )
        return assemble(accumulator, result)

    def close(self) -> None:
        self.transport.close()
