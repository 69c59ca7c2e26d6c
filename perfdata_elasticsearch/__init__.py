import argparse
import json
import logging
import sys

from logging.handlers import SysLogHandler
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry, write_to_textfile

from perfdata_elasticsearch.client import status
from perfdata_elasticsearch.config import EsConfig, load_config
from perfdata_elasticsearch.exceptions import ConfigurationError
from perfdata_elasticsearch.fetcher import MetricsFetcher
from perfdata_elasticsearch.metrics import FetchResultCollector, HostPoolCollector
from perfdata_elasticsearch.model import FetchResult, QueryRequest


def _build_parser() -> 'argparse.ArgumentParser':
    parser: 'argparse.ArgumentParser' = argparse.ArgumentParser(prog='perfdata-elasticsearch')
    parser.add_argument("-c", "--config", default='./config.yaml', help='es config; default use ./config.yaml')
    parser.add_argument("--es_cluster", help='es node url. eg http://127.0.0.1:9200 or 127.0.0.1:9200,127.0.0.2:9200')
    parser.add_argument("--log_level", default='INFO', help='log level')
    parser.add_argument(
        "--syslog_address",
        help="syslog address, enable syslog handle when value is not empty, "
             "If you want to send to the local, the value is '/dev/log'"
    )
    parser.add_argument(
        "--syslog_facility",
        help="syslog facility, can only be used when syslog is enabled",
        choices=SysLogHandler.facility_names.keys()
    )
    parser.add_argument(
        "--prometheus_textfile",
        help='write host pool and fetch gauges to this file (node exporter textfile format)'
    )

    sub_parsers = parser.add_subparsers(dest='command')
    sub_parsers.required = True
    sub_parsers.add_parser('status', help='check the connection to the cluster')

    fetch_parser: 'argparse.ArgumentParser' = sub_parsers.add_parser('fetch', help='fetch perfdata as json')
    fetch_parser.add_argument("--host_name", required=True)
    fetch_parser.add_argument("--service_name", default='')
    fetch_parser.add_argument("--check_command", required=True)
    fetch_parser.add_argument("--duration", default='PT12H', help='lookback, ISO8601 duration or eg 12h')
    fetch_parser.add_argument("--host_check", action='store_true', help='fetch the perfdata of the host check')
    fetch_parser.add_argument("--include", action='append', default=[], help='glob of metrics to include')
    fetch_parser.add_argument("--exclude", action='append', default=[], help='glob of metrics to exclude')
    return parser


def _setup_logging(args: 'argparse.Namespace') -> None:
    log_level: str = args.log_level
    syslog_address: Optional[str] = args.syslog_address

    basicConfig: Dict[str, Any] = dict(
        format='[%(asctime)s %(levelname)s %(process)d] %(message)s',
        datefmt='%y-%m-%d %H:%M:%S',
        level=getattr(logging, log_level.upper(), logging.INFO),
        # stdout carries the json output
        stream=sys.stderr,
    )

    if syslog_address:
        syslog_facility: int = SysLogHandler.facility_names.get(args.syslog_facility, SysLogHandler.LOG_USER)
        basicConfig.update(
            dict(
                handlers=[SysLogHandler(address=syslog_address, facility=syslog_facility)],
                format='%(levelname)s perfdata_elasticsearch %(message)s',
            )
        )
        del basicConfig['datefmt']
        del basicConfig['stream']

    logging.basicConfig(**basicConfig)


def main(argv: Optional[List[str]] = None) -> int:
    args: 'argparse.Namespace' = _build_parser().parse_args(argv)
    _setup_logging(args)

    try:
        config: EsConfig = load_config(args.config)
    except ConfigurationError as e:
        if args.es_cluster is None:
            logging.error(f'{e}. exit....')
            return 2
        logging.info(f'{e}, using defaults')
        config = EsConfig()
    if args.es_cluster:
        config.urls = args.es_cluster.split(',')

    try:
        fetcher: MetricsFetcher = MetricsFetcher.from_config(config)
    except ConfigurationError as e:
        logging.error(f'invalid configuration: {e}. exit....')
        return 2

    registry: CollectorRegistry = CollectorRegistry()
    registry.register(HostPoolCollector(fetcher.transport.host_pool))
    try:
        if args.command == 'status':
            output: Dict[str, Any] = status(fetcher.transport)
            print(output['output'])
            exit_code: int = 1 if output.get('error') else 0
        else:
            request: QueryRequest = QueryRequest.from_lookback(
                host_name=args.host_name,
                service_name=args.service_name,
                check_command=args.check_command,
                duration=args.duration,
                is_host_check=args.host_check,
                include_metrics=args.include,
                exclude_metrics=args.exclude,
            )
            result: FetchResult = fetcher.fetch(request)
            registry.register(FetchResultCollector(result))
            print(json.dumps(result.to_dict()))
            exit_code = 1 if result.errors else 0
    finally:
        fetcher.close()

    if args.prometheus_textfile:
        write_to_textfile(args.prometheus_textfile, registry)
    return exit_code
