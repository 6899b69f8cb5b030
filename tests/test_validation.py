import re
from unittest.mock import Mock

import pytest

from correlate.issue_extractor import IssueExtractor
from its.config import DEFAULT_SETTINGS, ItsConfig, _merge
from its.facade import ItsConnectionError
from its.validation import CommitValidationError, CommitValidator


def _validator(association, existing=(), dummy='', **settings):
    config = ItsConfig(_merge(DEFAULT_SETTINGS, dict(settings, association=association, dummy_issue_pattern=dummy, its_name='jira', commentlink={'match': r'bug#(\d+)', 'group_index': 1})))
    its = Mock()
    its.exists.side_effect = lambda issue: issue in existing
    return CommitValidator(config, its, IssueExtractor(config.issue_pattern(), 1)), its


def test_optional_accepts_everything():
    validator, its = _validator('OPTIONAL')
    assert validator.validate('p', 'No issue here') == []
    its.exists.assert_not_called()


def test_suggested_warns_about_missing_issue():
    validator, _ = _validator('SUGGESTED')
    messages = validator.validate('p', 'No issue here', revision='abc')
    assert len(messages) == 1
    assert messages[0].startswith('Missing issue-id in commit message')
    assert 'Commit abc not associated to any issue' in messages[0]


def test_mandatory_rejects_missing_issue():
    validator, _ = _validator('MANDATORY')
    with pytest.raises(CommitValidationError) as excinfo:
        validator.validate('p', 'No issue here')
    assert excinfo.value.synopsis == 'Missing issue-id in commit message'


def test_dummy_issue_is_accepted():
    validator, _ = _validator('MANDATORY', dummy='NO-ISSUE')
    assert validator.validate('p', 'Trivial\n\nNO-ISSUE') == []


def test_existing_issues_pass():
    validator, _ = _validator('MANDATORY', existing={'42'})
    assert validator.validate('p', 'Fix bug#42') == []


def test_non_existing_issues():
    validator, _ = _validator('SUGGESTED', existing={'42'})
    messages = validator.validate('p', 'Fix bug#42 bug#43 bug#44')
    assert len(messages) == 1
    assert 'Non-existing issue ids referenced in commit message' in messages[0]
    assert '* 43' in messages[0] and '* 44' in messages[0]
    assert '* 42' not in messages[0]

    validator, _ = _validator('MANDATORY', existing={'42'})
    with pytest.raises(CommitValidationError):
        validator.validate('p', 'Fix bug#42 bug#43')


def test_connectivity_problem_never_rejects():
    validator, its = _validator('MANDATORY')
    its.exists.side_effect = ItsConnectionError('timeout')
    messages = validator.validate('p', 'Fix bug#42')
    assert len(messages) == 1
    assert 'connectivity issue' in messages[0]


def test_disabled_branch_is_not_validated():
    validator, its = _validator('MANDATORY', enabled=True, branch=['refs/heads/master'])
    assert validator.validate('p', 'No issue', ref_name='refs/heads/other') == []
    with pytest.raises(CommitValidationError):
        validator.validate('p', 'No issue', ref_name='refs/heads/master')
