"""
Reader for rule files in git-config syntax.

    [rule "closeOnMerge"]
        event-type = change-merged
        association = subject,footer
        action = add-standard-comment
        action = perform-action Close

Every `rule` section becomes a Rule. The `action` key may repeat; any other key is a
condition whose every value becomes a separate Condition. Other sections are ignored.
"""
import logging
import re
from collections import OrderedDict
from typing import Dict, List, Tuple

from workflow.action_request import ActionRequest
from workflow.rules import Condition, Rule

logger = logging.getLogger(__name__)

RULE_SECTION = 'rule'
ACTION_KEY = 'action'

_SECTION_RE = re.compile(r'^\[\s*([A-Za-z0-9.-]+)(?:\s+"((?:[^"\\]|\\.)*)")?\s*\]\s*(?:[#;].*)?$')
_KEY_RE = re.compile(r'^([A-Za-z][A-Za-z0-9_.-]*)\s*(?:=(.*))?$')
_ESCAPES = {'n': '\n', 't': '\t', 'b': '\b', '"': '"', '\\': '\\'}


class RulesConfigError(Exception):
    """Raised for syntax errors in a rules file."""


def _parse_value(raw: str, lineno: int) -> str:
    """Decode a config value: strip comments and surrounding whitespace, honour quotes and escapes."""
    out = []
    pending_space = ''
    in_quotes = False
    i = 0
    raw = raw.strip()
    while i < len(raw):
        ch = raw[i]
        if ch == '\\':
            if i + 1 >= len(raw):
                raise RulesConfigError(f"line {lineno}: dangling backslash")
            nxt = raw[i + 1]
            if nxt not in _ESCAPES:
                raise RulesConfigError(f"line {lineno}: bad escape \\{nxt}")
            out.append(pending_space + _ESCAPES[nxt])
            pending_space = ''
            i += 2
            continue
        if ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and ch in '#;':
            break
        elif not in_quotes and ch.isspace():
            pending_space += ch
        else:
            out.append(pending_space + ch)
            pending_space = ''
        i += 1
    if in_quotes:
        raise RulesConfigError(f"line {lineno}: unterminated quote")
    return ''.join(out)


def _logical_lines(text: str):
    """Yield (lineno, line) joining lines that end in a backslash continuation."""
    buffer = ''
    start = None
    for lineno, line in enumerate(text.splitlines(), start=1):
        if start is None:
            start = lineno
        if line.endswith('\\') and not line.endswith('\\\\'):
            buffer += line[:-1]
            continue
        yield start, buffer + line
        buffer = ''
        start = None
    if buffer:
        yield start, buffer


def parse_sections(text: str) -> "OrderedDict[Tuple[str, str], Dict[str, List[str]]]":
    """Parse config text into {(section, subsection): {key: [values]}} keeping declaration order."""
    sections: "OrderedDict[Tuple[str, str], Dict[str, List[str]]]" = OrderedDict()
    current = None
    for lineno, line in _logical_lines(text or ''):
        stripped = line.strip()
        if not stripped or stripped[0] in '#;':
            continue
        if stripped.startswith('['):
            m = _SECTION_RE.match(stripped)
            if not m:
                raise RulesConfigError(f"line {lineno}: bad section header {stripped!r}")
            current = (m.group(1).lower(), m.group(2) or '')
            sections.setdefault(current, OrderedDict())
            continue
        m = _KEY_RE.match(stripped)
        if not m:
            raise RulesConfigError(f"line {lineno}: bad entry {stripped!r}")
        if current is None:
            raise RulesConfigError(f"line {lineno}: entry outside of a section")
        value = _parse_value(m.group(2), lineno) if m.group(2) is not None else 'true'
        sections[current].setdefault(m.group(1), []).append(value)
    return sections


def parse_rules(text: str) -> List[Rule]:
    """Build rules from config text, in the order their sections first appear."""
    rules = []
    for (section, name), entries in parse_sections(text).items():
        if section != RULE_SECTION:
            continue
        conditions = []
        actions = []
        for key, values in entries.items():
            if key == ACTION_KEY:
                actions.extend(ActionRequest.parse(v) for v in values)
            else:
                conditions.extend(Condition.create(key, v) for v in values)
        rules.append(Rule(name, tuple(conditions), tuple(actions)))
    return rules


def read_rules_file(path: str) -> List[Rule]:
    with open(path, 'r', encoding='utf-8') as f:
        text = f.read()
    try:
        return parse_rules(text)
    except RulesConfigError as ex:
        raise RulesConfigError(f"{path}: {ex}") from ex
