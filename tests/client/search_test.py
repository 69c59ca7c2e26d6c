from unittest import TestCase, mock

from perfdata_elasticsearch.client import search, status
from perfdata_elasticsearch.exceptions import DecodeError, HTTPError, NoHostReachable
from perfdata_elasticsearch.transport import Response
from tests.helpers import json_response


class SearchTests(TestCase):
    def setUp(self):
        self.transport = mock.Mock()

    def test_search(self):
        payload = {'hits': {'hits': [{'_id': '1'}]}}
        self.transport.send.return_value = json_response(payload)

        self.assertEqual(payload, search(self.transport, 'metrics-icinga2.http-default', {'size': 2000}))
        self.transport.send.assert_called_once_with(
            'POST', '/metrics-icinga2.http-default/_search', body={'size': 2000}
        )

    def test_http_error_with_reason(self):
        self.transport.send.return_value = json_response(
            {'error': {'type': 'index_not_found_exception', 'reason': 'no such index [x]'}, 'status': 404},
            status=404,
        )
        with self.assertRaises(HTTPError) as ctx:
            search(self.transport, 'x', {})
        self.assertEqual(404, ctx.exception.status)
        self.assertEqual('index_not_found_exception: no such index [x]', ctx.exception.reason)

    def test_http_error_without_json(self):
        self.transport.send.return_value = Response(503, {}, b'Service Unavailable', 'http://es1:9200')
        with self.assertRaises(HTTPError) as ctx:
            search(self.transport, 'x', {})
        self.assertEqual('HTTP error: 503 - Service Unavailable', str(ctx.exception))

    def test_error_in_body(self):
        self.transport.send.return_value = json_response({'error': 'boom'})
        with self.assertRaises(HTTPError):
            search(self.transport, 'x', {})

    def test_malformed_body(self):
        self.transport.send.return_value = Response(200, {}, b'{"hits": ', 'http://es1:9200')
        with self.assertRaises(DecodeError):
            search(self.transport, 'x', {})
        self.transport.send.return_value = json_response([1, 2])
        with self.assertRaises(DecodeError):
            search(self.transport, 'x', {})


class StatusTests(TestCase):
    def setUp(self):
        self.transport = mock.Mock()

    def test_ok(self):
        self.transport.send.return_value = json_response({'cluster_name': 'icinga'})
        self.assertEqual({'output': '{"cluster_name": "icinga"}'}, status(self.transport))

    def test_connection_error(self):
        self.transport.send.side_effect = NoHostReachable()
        result = status(self.transport)
        self.assertTrue(result['error'])
        self.assertEqual('Connection error: No host in pool reachable', result['output'])

    def test_http_error(self):
        self.transport.send.return_value = json_response(
            {'error': {'type': 'security_exception', 'reason': 'missing authentication credentials'}}, status=401
        )
        result = status(self.transport)
        self.assertTrue(result['error'])
        self.assertEqual(
            'HTTP error: 401 - security_exception: missing authentication credentials', result['output']
        )
