"""
Commit message and patch set lookups used by issue extraction.
"""
import logging
from typing import Dict, Optional, Tuple

from ingest.git import GitRepositories
from normalize.models import Event

logger = logging.getLogger(__name__)


class CommitMessageFetcher:
    """Fetch full commit messages. Non-commit or missing objects yield an empty message."""

    def __init__(self, repositories: Optional[GitRepositories] = None):
        self.repositories = repositories
        self._known: Dict[Tuple[str, str], str] = {}

    def remember(self, project: str, revision: str, message: str, overwrite: bool = True):
        """Record a message seen on an event so it can be served without a repository."""
        if not revision or not message:
            return
        if overwrite or (project, revision) not in self._known:
            self._known[(project, revision)] = message

    def fetch(self, project: str, revision: str) -> str:
        known = self._known.get((project, revision))
        if known is not None:
            return known
        if self.repositories is None:
            return ''
        if self.repositories.object_type(project, revision) != 'commit':
            return ''
        return self.repositories.commit_message(project, revision)

    def fetch_guarded(self, project: str, revision: str) -> str:
        try:
            return self.fetch(project, revision)
        except Exception:
            logger.error("Could not fetch commit message for commit %s of project %s", revision, project, exc_info=True)
            return ''


class PatchSetLookup:
    """Resolve the revision of the patch set preceding a given one.

    Revisions seen on replayed events are consulted first, then the change refs
    (`refs/changes/<last two digits>/<change>/<patch set>`) of the repository.
    """

    def __init__(self, repositories: Optional[GitRepositories] = None):
        self.repositories = repositories
        self._revisions: Dict[Tuple[str, int, int], str] = {}

    def record(self, event: Event):
        if event.change is None or event.patch_set is None or not event.patch_set.revision:
            return
        self._revisions[(event.project, event.change.number, event.patch_set.number)] = event.patch_set.revision

    def latest_patch_set(self, project: str, change_number: int) -> Optional[int]:
        """Highest patch set number seen on replayed events for the change, None if none was seen."""
        numbers = [number for (p, change, number) in self._revisions if p == project and change == change_number]
        return max(numbers) if numbers else None

    @staticmethod
    def change_ref(change_number: int, patch_set_number: int) -> str:
        return f"refs/changes/{change_number % 100:02d}/{change_number}/{patch_set_number}"

    def revision_of_previous_patch_set(self, project: str, change_number: int, patch_set_number: int) -> Optional[str]:
        previous = patch_set_number - 1
        if previous < 1:
            return None
        known = self._revisions.get((project, change_number, previous))
        if known:
            return known
        if self.repositories is None:
            return None
        return self.repositories.resolve(project, self.change_ref(change_number, previous))
