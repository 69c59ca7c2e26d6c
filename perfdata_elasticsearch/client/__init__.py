from typing import Type

from perfdata_elasticsearch.exceptions import ConfigurationError

from .base import BaseQueryBuilder, MetricFilter, PAGE_SIZE, is_excluded, is_included, search, status
from .classic import ClassicQueryBuilder
from .datastream import DatastreamQueryBuilder, normalize_check_command


def query_builder_class(writer: str) -> Type[BaseQueryBuilder]:
    for builder_class in (ClassicQueryBuilder, DatastreamQueryBuilder):
        if builder_class.key == writer:
            return builder_class
    raise ConfigurationError(f'unknown writer: {writer!r}')
