from datetime import datetime, timezone
from unittest import TestCase

from perfdata_elasticsearch.exceptions import ValidationError
from perfdata_elasticsearch.model import QueryRequest
from perfdata_elasticsearch.utils import interval_handle, parse_duration

NOW = datetime(2025, 6, 30, 12, 0, 0, tzinfo=timezone.utc)


class IntervalHandleTests(TestCase):
    def test_intervals(self):
        self.assertEqual(30, interval_handle('30'))
        self.assertEqual(30, interval_handle('30s'))
        self.assertEqual(300, interval_handle('5m'))
        self.assertEqual(43200, interval_handle('12h'))
        self.assertEqual(172800, interval_handle('2d'))
        self.assertEqual(604800, interval_handle('1w'))

    def test_invalid(self):
        for interval in ('', 'h', '12x', '-5', '1.5h'):
            with self.assertRaises(ValidationError, msg=interval):
                interval_handle(interval)


class ParseDurationTests(TestCase):
    def test_iso8601(self):
        self.assertEqual('2025-06-30T00:00:00', parse_duration('PT12H', now=NOW))
        self.assertEqual('2025-06-29T12:00:00', parse_duration('P1D', now=NOW))
        self.assertEqual('2025-06-23T12:00:00', parse_duration('P1W', now=NOW))
        self.assertEqual('2025-06-29T09:30:00', parse_duration('P1DT2H30M', now=NOW))
        self.assertEqual('2025-06-30T11:59:30', parse_duration('PT30S', now=NOW))
        self.assertEqual('2025-05-31T12:00:00', parse_duration('P1M', now=NOW))

    def test_short_form(self):
        self.assertEqual('2025-06-30T11:30:00', parse_duration('30m', now=NOW))
        self.assertEqual('2025-06-28T12:00:00', parse_duration('2d', now=NOW))

    def test_fallback_to_12_hours(self):
        for duration in (
                None, '', 'P', 'PT', 'P1DT', 'PT12', 'twelve hours',
                'P10000Y', 'PT99999999999999H', '99999999999999d',
        ):
            with self.assertLogs(level='WARNING'):
                self.assertEqual('2025-06-30T00:00:00', parse_duration(duration, now=NOW), duration)

    def test_query_request_from_lookback(self):
        request = QueryRequest.from_lookback(
            'web01', 'http', 'http', 'PT1H', include_metrics=['time'], now=NOW
        )
        self.assertEqual('2025-06-30T11:00:00', request.start)
        self.assertEqual(('time',), request.include_metrics)
        self.assertEqual((), request.exclude_metrics)
        self.assertFalse(request.is_host_check)

    def test_query_request_from_oversized_lookback(self):
        with self.assertLogs(level='WARNING'):
            request = QueryRequest.from_lookback('web01', 'http', 'http', 'P10000Y', now=NOW)
        self.assertEqual('2025-06-30T00:00:00', request.start)
