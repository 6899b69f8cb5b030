"""
Normalization helpers.
Turn raw `stream-events` JSON payloads into normalize.models.Event objects.
"""
import logging
from typing import Dict, Any, Optional
from normalize.models import Account, Approval, Change, Event, EventKind, PatchSet, RefUpdate

logger = logging.getLogger(__name__)

# JSON key holding the acting account, per event kind
_ACCOUNT_KEYS = {
    EventKind.PATCHSET_CREATED: 'uploader',
    EventKind.COMMENT_ADDED: 'author',
    EventKind.CHANGE_MERGED: 'submitter',
    EventKind.CHANGE_ABANDONED: 'abandoner',
    EventKind.CHANGE_RESTORED: 'restorer',
    EventKind.DRAFT_PUBLISHED: 'uploader',
    EventKind.REF_UPDATED: 'submitter',
}


def normalize_account(raw: Optional[Dict[str, Any]]) -> Optional[Account]:
    if not isinstance(raw, dict):
        return None
    return Account(email=raw.get('email'), username=raw.get('username'), name=raw.get('name'))


def _to_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_change(raw: Dict[str, Any]) -> Change:
    return Change(
        project=raw.get('project') or '',
        branch=raw.get('branch') or '',
        number=_to_int(raw.get('number')),
        id=raw.get('id') or '',
        subject=raw.get('subject') or '',
        commit_message=raw.get('commitMessage') or '',
        url=raw.get('url') or '',
        topic=raw.get('topic'),
        status=raw.get('status'),
        private=raw.get('private'),
        wip=raw.get('wip'),
        owner=normalize_account(raw.get('owner')),
    )


def normalize_patch_set(raw: Dict[str, Any]) -> PatchSet:
    return PatchSet(
        number=_to_int(raw.get('number')),
        revision=raw.get('revision') or '',
        ref=raw.get('ref') or '',
        created_on=raw.get('createdOn'),
        parents=list(raw.get('parents') or []),
        size_insertions=_to_int(raw.get('sizeInsertions')),
        size_deletions=_to_int(raw.get('sizeDeletions')),
        uploader=normalize_account(raw.get('uploader')),
        author=normalize_account(raw.get('author')),
    )


def normalize_ref_update(raw: Dict[str, Any]) -> RefUpdate:
    return RefUpdate(
        project=raw.get('project') or '',
        ref_name=raw.get('refName') or '',
        old_rev=raw.get('oldRev') or '',
        new_rev=raw.get('newRev') or '',
    )


def normalize_event(raw: Dict[str, Any]) -> Optional[Event]:
    """Create an Event from one decoded stream-events line.
    Returns None for event types this package does not handle.
    """
    kind = EventKind.from_tag(raw.get('type') or '')
    if kind is None:
        logger.debug("Event type %r not recognised and ignored", raw.get('type'))
        return None
    account = normalize_account(raw.get(_ACCOUNT_KEYS[kind]))
    if kind is EventKind.REF_UPDATED:
        ref_update = normalize_ref_update(raw.get('refUpdate') or {})
        return Event(kind, account=account, ref_update=ref_update)

    change = normalize_change(raw.get('change') or {})
    patch_set = normalize_patch_set(raw.get('patchSet') or {})
    approvals = [Approval(type=a.get('type') or '', value=str(a.get('value', ''))) for a in raw.get('approvals') or [] if isinstance(a, dict)]
    return Event(
        kind,
        change=change,
        patch_set=patch_set,
        account=account,
        approvals=approvals,
        comment=raw.get('comment'),
        reason=raw.get('reason'),
    )
