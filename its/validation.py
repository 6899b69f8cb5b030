"""
Commit validation against the configured association policy.
OPTIONAL accepts everything; SUGGESTED reports problems as warnings; MANDATORY rejects the
commit unless the problem is that the tracker could not be reached.
"""
import logging
from typing import List, Optional

from correlate.issue_extractor import IssueExtractor
from its.config import AssociationPolicy, ItsConfig
from its.facade import ItsConnectionError, ItsFacade

logger = logging.getLogger(__name__)


class CommitValidationError(Exception):
    """The commit violates a MANDATORY association policy."""

    def __init__(self, synopsis: str, messages: List[str]):
        super().__init__(synopsis)
        self.synopsis = synopsis
        self.messages = messages


class CommitValidator:
    def __init__(self, config: ItsConfig, its: ItsFacade, issue_extractor: IssueExtractor):
        self.config = config
        self.its = its
        self.issue_extractor = issue_extractor

    def _failure(self, synopsis: str, details: str, connectivity: bool = False) -> str:
        message = synopsis + "\n" + details
        if self.config.association_policy() is AssociationPolicy.MANDATORY and not connectivity:
            raise CommitValidationError(synopsis, [message])
        return message

    def _missing_issue_details(self, revision: str) -> str:
        pattern = self.config.issue_pattern()
        return (
            f"Commit {revision} not associated to any issue\n"
            "\n"
            "Hint: insert one or more issue-id anywhere in the commit message.\n"
            f"      Issue-ids are strings matching {pattern.pattern if pattern is not None else ''}\n"
            f"      and are pointing to existing tickets on {self.config.its_name} Issue-Tracker"
        )

    def _is_dummy(self, message: str) -> bool:
        dummy = self.config.dummy_issue_pattern()
        return dummy is not None and dummy.search(message) is not None

    def validate(self, project: str, message: str, revision: str = '', ref_name: Optional[str] = None) -> List[str]:
        """Return validation messages for a commit; raises CommitValidationError when the commit must be rejected."""
        if ref_name is not None and not self.config.is_enabled_for(project, ref_name):
            return []
        if self.config.association_policy() is AssociationPolicy.OPTIONAL:
            return []
        ret: List[str] = []
        issue_ids = self.issue_extractor.issue_ids(message)
        if not issue_ids:
            if not self._is_dummy(message):
                ret.append(self._failure("Missing issue-id in commit message", self._missing_issue_details(revision)))
            return ret

        non_existing = []
        for issue in issue_ids:
            try:
                if not self.its.exists(issue):
                    non_existing.append(issue)
            except ItsConnectionError as ex:
                synopsis = f"Failed to check whether or not issue {issue} exists, due to connectivity issue. Commit will be accepted."
                logger.warning("%s", synopsis, exc_info=True)
                ret.append(self._failure(synopsis, str(ex), connectivity=True))
        if non_existing:
            details = "The issue-ids\n"
            details += ''.join(f"    * {issue}\n" for issue in non_existing)
            details += f"are referenced in the commit message of\n{revision},\nbut do not exist in {self.config.its_name} Issue-Tracker"
            ret.append(self._failure("Non-existing issue ids referenced in commit message", details))
        return ret
