import json
from unittest.mock import Mock

import pytest

import cli
from storage.cache import Cache

SETTINGS = """
its_name: jira
tracker: noop
association: MANDATORY
enabled: true
commentlink:
  match: 'bug#(\\d+)'
config_dir: {config_dir}
logging:
  console: false
"""

RULES = """
[rule "merged"]
    event-type = change-merged
    association = added@somewhere
    action = add-standard-comment
"""


def _merged_event(number=7, message='Fix bug#42\\n\\nChange-Id: I7'):
    return (
        '{"type": "change-merged", "submitter": {"name": "Jane"}, '
        '"change": {"project": "p", "branch": "master", "number": %d, "subject": "Fix bug#42", '
        '"url": "http://r/%d", "commitMessage": "%s"}, '
        '"patchSet": {"number": 1, "revision": "rev%d"}}' % (number, number, message, number)
    )


@pytest.fixture
def workspace(tmp_path):
    config_dir = tmp_path / 'config'
    config_dir.mkdir()
    (config_dir / 'actions.config').write_text(RULES, encoding='utf-8')
    settings = tmp_path / 'its.yaml'
    settings.write_text(SETTINGS.format(config_dir=config_dir), encoding='utf-8')
    return tmp_path, settings


@pytest.fixture
def fake_its(monkeypatch):
    its = Mock()
    its.create_link_for_webui.side_effect = lambda url, text: url
    monkeypatch.setattr(cli, 'build_facade', lambda config, cache=None, dry_run=False: its)
    return its


def _run(*argv):
    return cli.run(cli.build_parser().parse_args(list(argv)))


def test_iter_events_skips_bad_lines(caplog):
    lines = ['', '{"type": "change-merged"}', 'not json', '[1, 2]']
    assert list(cli.iter_events(lines)) == [{'type': 'change-merged'}]
    assert 'Line 3 is not valid JSON' in caplog.text


def test_replay_events(workspace, fake_its):
    tmp_path, settings = workspace
    events = tmp_path / 'events.jsonl'
    events.write_text('\n'.join([_merged_event(7), '{"type": "unknown"}', 'garbage']) + '\n', encoding='utf-8')
    assert _run('--config', str(settings), '--events', str(events)) == 0
    fake_its.add_comment.assert_called_once_with('42', 'Change 7 merged by Jane:\nFix bug#42\n\nhttp://r/7')


def test_match_prints_actions(workspace, fake_its, capsys):
    tmp_path, settings = workspace
    properties = tmp_path / 'properties.json'
    properties.write_text(json.dumps({'event-type': 'change-merged', 'association': 'somewhere added@somewhere'}), encoding='utf-8')
    assert _run('--config', str(settings), '--match', str(properties)) == 0
    assert capsys.readouterr().out.strip() == 'add-standard-comment'


def test_validate(workspace, fake_its, capsys):
    tmp_path, settings = workspace
    message = tmp_path / 'COMMIT_MSG'
    message.write_text('No issue referenced\n', encoding='utf-8')
    assert _run('--config', str(settings), '--validate', str(message), '--project', 'p') == 1
    assert 'REJECTED: Missing issue-id in commit message' in capsys.readouterr().out

    fake_its.exists.return_value = True
    message.write_text('Fix bug#42\n', encoding='utf-8')
    assert _run('--config', str(settings), '--validate', str(message), '--project', 'p') == 0


def test_cache_info(workspace, capsys):
    tmp_path, settings = workspace
    db = str(tmp_path / 'cache.db')
    with Cache(db) as cache:
        cache.set('jira:issue:A-1', {'id': 1})
    assert _run('--config', str(settings), '--cache', db, '--cache-info') == 0
    assert json.loads(capsys.readouterr().out)['count'] == 1


def test_cache_remove_with_force(workspace, capsys):
    tmp_path, settings = workspace
    db = str(tmp_path / 'cache.db')
    with Cache(db) as cache:
        cache.set('jira:issue:A-1', {'id': 1})
    assert _run('--config', str(settings), '--cache', db, '--cache-remove', 'jira:issue:A-1', '--force') == 0
    assert 'Removed 1 row(s)' in capsys.readouterr().out


def test_cache_clear_aborted(workspace, monkeypatch, capsys):
    tmp_path, settings = workspace
    db = str(tmp_path / 'cache.db')
    with Cache(db) as cache:
        cache.set('k', 1)
    monkeypatch.setattr('builtins.input', lambda prompt: 'n')
    _run('--config', str(settings), '--cache', db, '--cache-clear')
    assert 'Aborted cache clear.' in capsys.readouterr().out
    with Cache(db) as cache:
        assert cache.stats()['count'] == 1


def test_main_without_action_exits(monkeypatch):
    monkeypatch.setattr('sys.argv', ['cli.py'])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 2
