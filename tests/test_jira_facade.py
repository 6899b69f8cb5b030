import unittest
from unittest.mock import Mock, patch

import requests

from its.facade import ItsConnectionError, ItsError, NoopFacade
from its.jira import JiraFacade
from storage.cache import Cache


def _resp(status, body=None):
    resp = Mock()
    resp.status_code = status
    resp.headers = {}
    resp.json.return_value = body
    resp.text = '' if body is None else str(body)
    return resp


class TestJiraFacade(unittest.TestCase):
    def setUp(self):
        self.jira = JiraFacade('token', 'https://jira.example.com/')

    def test_add_comment(self):
        with patch('storage.retry.requests.request', return_value=_resp(201, {'id': '1'})) as req:
            self.jira.add_comment('PROJ-42', 'Change merged')
        method, url = req.call_args.args
        self.assertEqual(method, 'POST')
        self.assertEqual(url, 'https://jira.example.com/rest/api/2/issue/PROJ-42/comment')
        self.assertEqual(req.call_args.kwargs['json'], {'body': 'Change merged'})
        self.assertEqual(req.call_args.kwargs['headers']['Authorization'], 'Bearer token')

    def test_exists(self):
        with patch('storage.retry.requests.request', return_value=_resp(200, {'id': '10'})):
            self.assertTrue(self.jira.exists('PROJ-42'))
        with patch('storage.retry.requests.request', return_value=_resp(404, {'errorMessages': ['nope']})):
            self.assertFalse(self.jira.exists('PROJ-43'))

    def test_exists_is_cached(self):
        with Cache(':memory:') as cache:
            jira = JiraFacade('token', 'https://jira.example.com', cache=cache)
            with patch('storage.retry.requests.request', return_value=_resp(200, {'id': '10'})) as req:
                self.assertTrue(jira.exists('PROJ-42'))
                self.assertTrue(jira.exists('PROJ-42'))
            self.assertEqual(req.call_count, 1)
            self.assertIsNotNone(cache.get('jira:issue:PROJ-42'))

    def test_unreachable_tracker(self):
        with patch('storage.retry.requests.request', side_effect=requests.ConnectionError('down')), patch('storage.retry.time.sleep'):
            with self.assertRaises(ItsConnectionError):
                self.jira.exists('PROJ-42')

    def test_refused_request(self):
        with patch('storage.retry.requests.request', return_value=_resp(400, {'errorMessages': ['bad']})):
            with self.assertRaises(ItsError) as ctx:
                self.jira.add_comment('PROJ-42', 'x')
        self.assertNotIsInstance(ctx.exception, ItsConnectionError)

    def test_perform_action_runs_named_transition(self):
        transitions = {'transitions': [{'id': '11', 'name': 'Start Progress'}, {'id': '21', 'name': 'Resolve Issue'}]}
        with patch('storage.retry.requests.request', side_effect=[_resp(200, transitions), _resp(204)]) as req:
            self.jira.perform_action('PROJ-42', 'resolve issue')
        method, url = req.call_args.args
        self.assertEqual((method, url), ('POST', 'https://jira.example.com/rest/api/2/issue/PROJ-42/transitions'))
        self.assertEqual(req.call_args.kwargs['json'], {'transition': {'id': '21'}})

    def test_perform_action_unknown_transition(self):
        with patch('storage.retry.requests.request', return_value=_resp(200, {'transitions': []})):
            with self.assertRaises(ItsError):
                self.jira.perform_action('PROJ-42', 'Close')

    def test_add_value_to_field(self):
        with patch('storage.retry.requests.request', return_value=_resp(204)) as req:
            self.jira.add_value_to_field('PROJ-42', 'master', 'labels')
        self.assertEqual(req.call_args.args[0], 'PUT')
        self.assertEqual(req.call_args.kwargs['json'], {'update': {'labels': [{'add': 'master'}]}})

    def test_versions(self):
        with patch('storage.retry.requests.request', return_value=_resp(201, {'id': '5'})) as req:
            self.jira.create_version('PROJ', 'v1.0')
        self.assertEqual(req.call_args.kwargs['json'], {'name': 'v1.0', 'project': 'PROJ'})

        versions = [{'id': '4', 'name': 'v0.9'}, {'id': '5', 'name': 'v1.0'}]
        with patch('storage.retry.requests.request', side_effect=[_resp(200, versions), _resp(200, {'id': '5'})]) as req:
            self.jira.mark_version_as_released('PROJ', 'v1.0')
        method, url = req.call_args.args
        self.assertEqual((method, url), ('PUT', 'https://jira.example.com/rest/api/2/version/5'))
        self.assertEqual(req.call_args.kwargs['json'], {'released': True})

    def test_link_markup(self):
        self.assertEqual(self.jira.create_link_for_webui('http://r/1', 'Change 1'), '[Change 1|http://r/1]')


def test_noop_facade_logs(caplog):
    import logging
    its = NoopFacade()
    with caplog.at_level(logging.INFO, logger='its.facade'):
        its.add_comment('PROJ-1', 'hello')
    assert 'add_comment(PROJ-1): hello' in caplog.text
    assert its.exists('PROJ-1') is False
    assert its.create_link_for_webui('http://r/1', 'x') == ''


if __name__ == '__main__':
    unittest.main()
