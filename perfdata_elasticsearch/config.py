import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml

from perfdata_elasticsearch.exceptions import ConfigurationError

SECTION: str = 'elasticsearch'
WRITERS = ('elasticsearch', 'elasticsearchdatastream')

DEFAULT_CONFIG: Dict[str, Any] = {
    'api_url': 'http://localhost:9200',
    'api_index': 'icinga2-*',
    'api_timeout': 10,
    'api_max_data_points': 10000,
    'api_username': '',
    'api_password': '',
    'api_tls_insecure': False,
    'api_retries': 1,
    'writer': 'elasticsearchdatastream',
}


def _split_urls(api_url: Union[str, List[str]]) -> List[str]:
    if isinstance(api_url, str):
        api_url = api_url.split(',')
    return [url.strip().rstrip('/') for url in api_url if url and url.strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@dataclass
class EsConfig(object):
    urls: List[str] = field(default_factory=lambda: ['http://localhost:9200'])
    username: str = ''
    password: str = ''
    timeout: float = 10
    verify_certs: bool = True
    retries: int = 1
    writer: str = 'elasticsearchdatastream'
    index: str = 'icinga2-*'
    # accepted for compatibility with existing configuration files, not used
    max_data_points: int = 10000

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> 'EsConfig':
        config = config or {}
        section: Dict[str, Any] = dict(DEFAULT_CONFIG)
        section.update(config.get(SECTION, config) or {})

        urls: List[str] = _split_urls(section['api_url'] or '')
        if not urls:
            raise ConfigurationError('api_url must contain at least one url')

        try:
            timeout: float = float(section['api_timeout'])
            retries: int = int(section['api_retries'])
            max_data_points: int = int(section['api_max_data_points'])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f'invalid number in {SECTION} config: {e}') from e
        if timeout <= 0:
            raise ConfigurationError(f'api_timeout must be positive, got {timeout}')
        if retries < 0:
            raise ConfigurationError(f'api_retries must not be negative, got {retries}')

        writer: str = str(section['writer']).lower()
        if writer not in WRITERS:
            raise ConfigurationError(f'writer must be one of {", ".join(WRITERS)}, got {writer!r}')

        return cls(
            urls=urls,
            username=section['api_username'] or '',
            password=section['api_password'] or '',
            timeout=timeout,
            # the config says "skip verification", the http layer wants "verify"
            verify_certs=not _as_bool(section['api_tls_insecure']),
            retries=retries,
            writer=writer,
            index=section['api_index'] or DEFAULT_CONFIG['api_index'],
            max_data_points=max_data_points,
        )


def load_config(config_filename_path: str) -> EsConfig:
    if not os.path.exists(config_filename_path):
        raise ConfigurationError(f"Can't found config path {config_filename_path}")
    logging.info(f'reading config from {config_filename_path}')
    with open(config_filename_path, 'r') as config_file:
        try:
            config: Any = yaml.safe_load(config_file)
        except yaml.YAMLError as e:
            raise ConfigurationError(f'invalid yaml in {config_filename_path}: {e}') from e
    if config is not None and not isinstance(config, dict):
        raise ConfigurationError(f'{config_filename_path} must contain a mapping')
    return EsConfig.from_dict(config)
