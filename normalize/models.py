"""
Event models for repository change events.
Each event carries an EventKind tag and only the payload fields that kind uses.
"""

from enum import Enum
from typing import List, Optional


class EventKind(Enum):
    """Supported event kinds. The value is the wire tag used in `type` and `event-type`."""

    PATCHSET_CREATED = 'patchset-created'
    COMMENT_ADDED = 'comment-added'
    CHANGE_MERGED = 'change-merged'
    CHANGE_ABANDONED = 'change-abandoned'
    CHANGE_RESTORED = 'change-restored'
    DRAFT_PUBLISHED = 'draft-published'
    REF_UPDATED = 'ref-updated'

    @property
    def event_name(self) -> str:
        return _EVENT_NAMES[self]

    @property
    def account_role(self) -> str:
        """Property prefix for the account that triggered the event."""
        return _ACCOUNT_ROLES[self]

    @property
    def is_change_event(self) -> bool:
        return self is not EventKind.REF_UPDATED

    @classmethod
    def from_tag(cls, tag: str) -> Optional['EventKind']:
        for kind in cls:
            if kind.value == tag:
                return kind
        return None


_EVENT_NAMES = {
    EventKind.PATCHSET_CREATED: 'PatchSetCreatedEvent',
    EventKind.COMMENT_ADDED: 'CommentAddedEvent',
    EventKind.CHANGE_MERGED: 'ChangeMergedEvent',
    EventKind.CHANGE_ABANDONED: 'ChangeAbandonedEvent',
    EventKind.CHANGE_RESTORED: 'ChangeRestoredEvent',
    EventKind.DRAFT_PUBLISHED: 'DraftPublishedEvent',
    EventKind.REF_UPDATED: 'RefUpdatedEvent',
}

_ACCOUNT_ROLES = {
    EventKind.PATCHSET_CREATED: 'uploader',
    EventKind.COMMENT_ADDED: 'commenter',
    EventKind.CHANGE_MERGED: 'submitter',
    EventKind.CHANGE_ABANDONED: 'abandoner',
    EventKind.CHANGE_RESTORED: 'restorer',
    EventKind.DRAFT_PUBLISHED: 'uploader',
    EventKind.REF_UPDATED: 'submitter',
}


class Account:
    """
    A user account as reported on events.
    """
    def __init__(self, email: Optional[str] = None, username: Optional[str] = None, name: Optional[str] = None):
        self.email = email
        self.username = username
        self.name = name


class PatchSet:
    """
    A single patch set of a change.
    """
    def __init__(self, number: int, revision: str, ref: str = '', created_on: Optional[int] = None, parents: Optional[List[str]] = None, size_insertions: int = 0, size_deletions: int = 0, uploader: Optional[Account] = None, author: Optional[Account] = None):
        self.number = number
        self.revision = revision
        self.ref = ref
        self.created_on = created_on
        self.parents = parents or []
        self.size_insertions = size_insertions
        self.size_deletions = size_deletions
        self.uploader = uploader
        self.author = author


class Change:
    """
    A code review change.
    """
    def __init__(self, project: str, branch: str, number: int, id: str = '', subject: str = '', commit_message: str = '', url: str = '', topic: Optional[str] = None, status: Optional[str] = None, private: Optional[bool] = None, wip: Optional[bool] = None, owner: Optional[Account] = None):
        self.project = project
        self.branch = branch
        self.number = number
        self.id = id  # Change-Id footer value, e.g. I0123abcd...
        self.subject = subject
        self.commit_message = commit_message
        self.url = url
        self.topic = topic
        self.status = status  # NEW/MERGED/ABANDONED
        self.private = private
        self.wip = wip
        self.owner = owner


class Approval:
    """
    A label vote attached to a comment, e.g. type 'Code-Review' value '+2'.
    """
    def __init__(self, type: str, value: str):
        self.type = type
        self.value = value


class RefUpdate:
    """
    A direct update of a git ref.
    """
    def __init__(self, project: str, ref_name: str, old_rev: str, new_rev: str):
        self.project = project
        self.ref_name = ref_name
        self.old_rev = old_rev
        self.new_rev = new_rev


class Event:
    """
    Tagged change event. `kind` decides which of the payload fields are set:
    change events carry `change` and `patch_set`, ref updates carry `ref_update`.
    `account` is the actor in the role given by `kind.account_role`.
    """
    def __init__(self, kind: EventKind, change: Optional[Change] = None, patch_set: Optional[PatchSet] = None, account: Optional[Account] = None, approvals: Optional[List[Approval]] = None, comment: Optional[str] = None, reason: Optional[str] = None, ref_update: Optional[RefUpdate] = None):
        self.kind = kind
        self.change = change
        self.patch_set = patch_set
        self.account = account
        self.approvals = approvals or []
        self.comment = comment
        self.reason = reason
        self.ref_update = ref_update

    @property
    def project(self) -> str:
        if self.change is not None:
            return self.change.project
        if self.ref_update is not None:
            return self.ref_update.project
        return ''

    @property
    def ref_name(self) -> str:
        if self.ref_update is not None:
            return self.ref_update.ref_name
        if self.change is not None:
            branch = self.change.branch
            return branch if branch.startswith('refs/') else 'refs/heads/' + branch
        return ''

    @property
    def revision(self) -> Optional[str]:
        if self.patch_set is not None:
            return self.patch_set.revision
        if self.ref_update is not None:
            return self.ref_update.new_rev
        return None

    def __repr__(self):
        return f"Event({self.kind.value}, project={self.project!r}, ref={self.ref_name!r})"
