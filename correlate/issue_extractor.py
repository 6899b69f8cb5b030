"""
Issue reference extraction from commit messages.
A message is split into subject, body and footer; every issue id matched by the
configured pattern is tagged with the places it was found ("association" tags).
When the previous patch set of a change is known, tags that are new in the current
revision are additionally reported as `added@<tag>`.
"""
import bisect
import logging
import re
from typing import Dict, List, Optional, Pattern, Set, Tuple

logger = logging.getLogger(__name__)

SOMEWHERE = 'somewhere'
SUBJECT = 'subject'
BODY = 'body'
FOOTER = 'footer'
ADDED_PREFIX = 'added@'

# "Key: value" footer line, e.g. "Bug: 42" or "Change-Id: I0123..."
FOOTER_LINE_RE = re.compile(r'^([A-Za-z0-9][A-Za-z0-9_-]*):')

Associations = Dict[str, Set[str]]


def _is_blank(line: str) -> bool:
    return not line.strip()


def _footer_key(line: str) -> Optional[str]:
    m = FOOTER_LINE_RE.match(line)
    return m.group(1) if m else None


class CommitMessage:
    """
    A commit message split into segments.

    subject: the first line (possibly empty).
    body: lines between the subject and the footer; empty unless a blank line follows the subject.
    footer: the trailing run of "Key: value" lines, only after a blank line separator.
    Trailing blank lines are ignored.
    """

    def __init__(self, text: str):
        self.text = text or ''
        lines: List[Tuple[int, str]] = []
        offset = 0
        for line in self.text.split('\n'):
            lines.append((offset, line))
            offset += len(line) + 1
        while lines and _is_blank(lines[-1][1]):
            lines.pop()
        self._lines = lines
        self._starts = [start for start, _ in lines]

        self.has_separator = any(_is_blank(line) for _, line in lines[1:])
        self.footer_start = len(lines)
        if self.has_separator:
            while self.footer_start > 1 and _footer_key(lines[self.footer_start - 1][1]):
                self.footer_start -= 1

    @property
    def subject(self) -> str:
        return self._lines[0][1] if self._lines else ''

    @property
    def body(self) -> List[str]:
        if not self.has_separator:
            return []
        return [line for _, line in self._lines[1:self.footer_start] if not _is_blank(line)]

    @property
    def footer(self) -> List[str]:
        return [line for _, line in self._lines[self.footer_start:]]

    def line_index_at(self, offset: int) -> Optional[int]:
        index = bisect.bisect_right(self._starts, offset) - 1
        if index < 0 or index >= len(self._lines):
            return None
        start, line = self._lines[index]
        if offset > start + len(line):
            return None
        return index

    def tags_at(self, offset: int) -> Set[str]:
        """Return the segment tags for a match starting at the given offset (without `somewhere`)."""
        index = self.line_index_at(offset)
        if index is None:
            return set()
        if index == 0:
            return {SUBJECT}
        if not self.has_separator:
            return set()
        if index < self.footer_start:
            return {BODY}
        tags = {FOOTER}
        key = _footer_key(self._lines[index][1])
        if key:
            tags.add(f"{FOOTER}-{key}")
        return tags


def _issue_id(match, group_index: int) -> Optional[str]:
    try:
        value = match.group(group_index)
    except IndexError:
        return None
    return value or None


def extract_associations(message: str, issue_pattern: Optional[Pattern], group_index: int = 1) -> Associations:
    """Map every issue id found in `message` to the set of places it occurs in."""
    ret: Associations = {}
    if not message or issue_pattern is None:
        return ret
    segments = CommitMessage(message)
    for match in issue_pattern.finditer(message):
        issue = _issue_id(match, group_index)
        if issue is None:
            continue
        tags = ret.setdefault(issue, set())
        tags.add(SOMEWHERE)
        tags.update(segments.tags_at(match.start()))
    return ret


def add_added_tags(current: Associations, prior: Associations) -> Associations:
    """Return a copy of `current` where each tag absent from `prior` for the same issue is also reported as added@tag."""
    ret: Associations = {}
    for issue, tags in current.items():
        new_tags = tags - prior.get(issue, set())
        ret[issue] = set(tags) | {ADDED_PREFIX + tag for tag in new_tags}
    return ret


def render_associations(tags: Set[str]) -> str:
    """Serialize a tag set as space separated tokens in lexicographic order."""
    return ' '.join(sorted(tags))


class IssueExtractor:
    """Extract issue associations for messages and for revisions of a repository.

    commit_fetcher needs `fetch_guarded(project, revision) -> str`;
    patch_sets needs `revision_of_previous_patch_set(project, change_number, patch_set_number) -> Optional[str]`.
    """

    def __init__(self, issue_pattern: Optional[Pattern], group_index: int = 1, commit_fetcher=None, patch_sets=None):
        self.issue_pattern = issue_pattern
        self.group_index = group_index
        self.commit_fetcher = commit_fetcher
        self.patch_sets = patch_sets

    def issue_ids(self, text: str) -> List[str]:
        """Return the distinct issue ids referenced anywhere in `text`, sorted."""
        return sorted(extract_associations(text, self.issue_pattern, self.group_index))

    def extract(self, message: str) -> Associations:
        return extract_associations(message, self.issue_pattern, self.group_index)

    def extract_with_prior(self, message: str, prior: Optional[str]) -> Associations:
        """Extract from `message` and mark tags missing from the `prior` message as added.
        A prior of None means there was no previous revision: every tag counts as added.
        """
        current = self.extract(message)
        prior_associations = self.extract(prior) if prior is not None else {}
        return add_added_tags(current, prior_associations)

    def get_issue_ids(self, project: str, revision: str, patch_set: Optional[Tuple[int, int]] = None) -> Associations:
        """Extract associations for a revision of `project`.
        When `patch_set` is a (change number, patch set number) pair the previous patch set is diffed against.
        """
        message = self.commit_fetcher.fetch_guarded(project, revision) if self.commit_fetcher else ''
        if patch_set is None:
            return self.extract(message)
        return self.extract_with_prior(message, self._previous_message(project, patch_set))

    def _previous_message(self, project: str, patch_set: Tuple[int, int]) -> Optional[str]:
        change_number, number = patch_set
        if number <= 1 or self.patch_sets is None:
            return None
        try:
            previous = self.patch_sets.revision_of_previous_patch_set(project, change_number, number)
        except Exception:
            logger.warning("Could not look up previous patch set of change %s/%s", change_number, number, exc_info=True)
            return None
        if not previous or self.commit_fetcher is None:
            return None
        return self.commit_fetcher.fetch_guarded(project, previous)
