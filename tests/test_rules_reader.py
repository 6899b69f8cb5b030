import pytest

from workflow.rules_reader import RulesConfigError, parse_rules, parse_sections, read_rules_file

RULES = """
# comment
[rule "rule1"]
    event-type = change-merged
    association = somewhere, subject   ; inline comment
    association = !,footer
    action = add-comment Change merged
    action = "add-standard-comment"

[other "ignored"]
    key = value

[rule "rule2"]
    action = log-event info
"""


def test_parse_rules():
    rules = parse_rules(RULES)
    assert [r.name for r in rules] == ['rule1', 'rule2']
    rule1 = rules[0]
    assert [(c.key, sorted(c.values), c.negated) for c in rule1.conditions] == [
        ('event-type', ['change-merged'], False),
        ('association', ['somewhere', 'subject'], False),
        ('association', ['footer'], True),
    ]
    assert [str(a) for a in rule1.action_requests] == ['add-comment Change merged', 'add-standard-comment']
    assert rules[1].conditions == ()


def test_repeated_section_merges():
    text = '[rule "r"]\n  action = a\n[rule "r"]\n  action = b\n'
    rules = parse_rules(text)
    assert len(rules) == 1
    assert [a.name for a in rules[0].action_requests] == ['a', 'b']


def test_values_with_quotes_escapes_and_continuations():
    text = '[rule "r"]\n  action = add-comment "keep  # this" \\\ntail\n  note = say \\"hi\\"\n'
    sections = parse_sections(text)
    entries = sections[('rule', 'r')]
    assert entries['action'] == ['add-comment keep  # this tail']
    assert entries['note'] == ['say "hi"']


def test_key_without_value_is_true():
    sections = parse_sections('[rule "r"]\n  flag\n')
    assert sections[('rule', 'r')]['flag'] == ['true']


@pytest.mark.parametrize('text', [
    'action = a\n',
    '[rule "r"\n',
    '[rule "r"]\n  = value\n',
    '[rule "r"]\n  action = "unterminated\n',
    '[rule "r"]\n  action = bad \\q escape\n',
])
def test_errors(text):
    with pytest.raises(RulesConfigError):
        parse_rules(text)


def test_read_rules_file_names_the_file(tmp_path):
    path = tmp_path / 'actions.config'
    path.write_text('[rule "r"\n', encoding='utf-8')
    with pytest.raises(RulesConfigError) as excinfo:
        read_rules_file(str(path))
    assert str(path) in str(excinfo.value)
