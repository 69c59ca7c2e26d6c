import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from perfdata_elasticsearch.exceptions import ValidationError

DEFAULT_LOOKBACK: timedelta = timedelta(hours=12)
TIME_FORMAT: str = '%Y-%m-%dT%H:%M:%S'

_ISO_DURATION_RE = re.compile(
    r'^P(?!$)(?:(?P<years>\d+)Y)?(?:(?P<months>\d+)M)?(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?'
    r'(?:T(?=\d)(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$'
)
_UNIT_SECONDS: Dict[str, int] = {
    's': 1,
    'm': 60,
    'h': 60 * 60,
    'd': 24 * 60 * 60,
    'w': 7 * 24 * 60 * 60,
}


def interval_handle(_interval: str) -> int:
    """parse short intervals like 30, 30s, 5m, 12h, 2d or 1w into seconds"""
    _interval = _interval.strip()
    if _interval.isdecimal():
        return int(_interval)
    unit: str = _interval[-1:].lower()
    if unit not in _UNIT_SECONDS or not _interval[:-1].isdecimal():
        raise ValidationError('Not support interval:{}'.format(_interval))
    return int(_interval[:-1]) * _UNIT_SECONDS[unit]


def iso_duration_handle(duration: str) -> timedelta:
    # years and months have no fixed length, they are approximated by 365 and 30 days
    match = _ISO_DURATION_RE.match(duration.strip().upper())
    if not match:
        raise ValidationError('Not support duration:{}'.format(duration))
    parts: Dict[str, int] = {key: int(value) for key, value in match.groupdict().items() if value}
    return timedelta(
        days=parts.get('years', 0) * 365 + parts.get('months', 0) * 30 + parts.get('days', 0),
        weeks=parts.get('weeks', 0),
        hours=parts.get('hours', 0),
        minutes=parts.get('minutes', 0),
        seconds=parts.get('seconds', 0),
    )


def duration_handle(duration: str) -> timedelta:
    if duration.strip().upper().startswith('P'):
        return iso_duration_handle(duration)
    return timedelta(seconds=interval_handle(duration))


def parse_duration(duration: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Turn a lookback duration into the lower bound of the time range query.
    A malformed duration falls back to the last 12 hours.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    try:
        if not duration:
            raise ValidationError('empty duration')
        start: datetime = now - duration_handle(duration)
    except (ValidationError, OverflowError) as e:
        logging.warning(f'Failed to parse duration {duration!r}: {e}, using {DEFAULT_LOOKBACK}')
        start = now - DEFAULT_LOOKBACK
    return start.strftime(TIME_FORMAT)
