import unittest

from its.config import AssociationPolicy, ItsConfig, _merge, DEFAULT_SETTINGS, load_settings, ref_matches
from normalize.models import Change, Event, EventKind, PatchSet


def _config(**overrides):
    return ItsConfig(_merge(DEFAULT_SETTINGS, overrides))


class TestLoadSettings(unittest.TestCase):
    def test_missing_file_gives_defaults(self):
        settings = load_settings('/nonexistent/its.yaml')
        self.assertEqual(settings['its_name'], 'its')
        self.assertEqual(settings['commentlink']['group_index'], 1)

    def test_file_and_env_override(self):
        import os
        import tempfile
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'its.yaml')
            with open(path, 'w', encoding='utf-8') as f:
                f.write("its_name: jira\ncommentlink:\n  match: 'bug#(\\d+)'\nlogging:\n  level: DEBUG\n")
            old = os.environ.get('ITS_URL')
            os.environ['ITS_URL'] = 'https://jira.example.com'
            try:
                settings = load_settings(path)
            finally:
                if old is None:
                    del os.environ['ITS_URL']
                else:
                    os.environ['ITS_URL'] = old
        self.assertEqual(settings['its_name'], 'jira')
        self.assertEqual(settings['commentlink']['match'], 'bug#(\\d+)')
        # nested defaults survive a partial override
        self.assertEqual(settings['commentlink']['group_index'], 1)
        self.assertTrue(settings['logging']['console'])
        self.assertEqual(settings['url'], 'https://jira.example.com')


class TestItsConfig(unittest.TestCase):
    def test_issue_pattern(self):
        config = _config(commentlink={'match': r'bug#(\d+)', 'group_index': 1})
        self.assertEqual(config.issue_pattern().pattern, r'bug#(\d+)')
        self.assertIs(config.issue_pattern(), config.issue_pattern())
        self.assertEqual(config.issue_pattern_group_index(), 1)

    def test_group_index_fallbacks(self):
        self.assertEqual(_config(commentlink={'match': r'bug#(\d+)', 'group_index': 5}).issue_pattern_group_index(), 1)
        self.assertEqual(_config(commentlink={'match': r'[A-Z]+-\d+', 'group_index': 1}).issue_pattern_group_index(), 0)
        self.assertEqual(_config(commentlink={'match': r'(a)(b)', 'group_index': 2}).issue_pattern_group_index(), 2)

    def test_invalid_or_missing_pattern(self):
        with self.assertLogs('its.config', level='ERROR'):
            self.assertIsNone(_config(commentlink={'match': '(unclosed'}).issue_pattern())
        self.assertIsNone(_config(commentlink={'match': ''}).issue_pattern())

    def test_association_policy(self):
        self.assertIs(_config().association_policy(), AssociationPolicy.OPTIONAL)
        self.assertIs(_config(association='mandatory').association_policy(), AssociationPolicy.MANDATORY)
        with self.assertLogs('its.config', level='WARNING'):
            self.assertIs(_config(association='sometimes').association_policy(), AssociationPolicy.OPTIONAL)

    def test_projects(self):
        config = _config(projects={'team/app': {'parent': 'team', 'its_project': 'APP'}, 'team': {'its_project': 'TEAM'}})
        self.assertEqual(config.lineage('team/app'), ['team/app', 'team', 'All-Projects'])
        self.assertEqual(config.project_parents(), {'team/app': 'team'})
        self.assertEqual(config.its_projects(), {'team/app': 'APP', 'team': 'TEAM'})

    def test_enablement(self):
        config = _config(enabled=False, branch=['refs/heads/*'], projects={
            'on': {'enabled': True},
            'off': {'enabled': False, 'parent': 'forced'},
            'forced': {'enabled': 'enforced', 'branch': ['^refs/heads/stable-.*']},
        })
        self.assertFalse(config.is_enabled_for('other', 'refs/heads/master'))
        self.assertTrue(config.is_enabled_for('on', 'refs/heads/master'))
        self.assertFalse(config.is_enabled_for('on', 'refs/meta/config'))
        # enforced on an ancestor wins over a local disable; the nearest branch setting applies
        self.assertTrue(config.is_enabled_for('off', 'refs/heads/stable-2.9'))
        self.assertFalse(config.is_enabled_for('off', 'refs/heads/master'))

    def test_is_enabled_for_event(self):
        config = _config(enabled=True)
        event = Event(EventKind.CHANGE_MERGED, change=Change('p', 'master', 1), patch_set=PatchSet(1, 'r'))
        self.assertTrue(config.is_enabled(event))

    def test_ref_matches(self):
        self.assertTrue(ref_matches('refs/heads/master', 'refs/heads/master'))
        self.assertTrue(ref_matches('refs/heads/feature/x', 'refs/heads/*'))
        self.assertFalse(ref_matches('refs/tags/v1', 'refs/heads/*'))
        self.assertTrue(ref_matches('refs/heads/stable-3.0', '^refs/heads/stable-.*'))
        with self.assertLogs('its.config', level='WARNING'):
            self.assertFalse(ref_matches('refs/heads/x', '^refs/heads/(['))


if __name__ == '__main__':
    unittest.main()
