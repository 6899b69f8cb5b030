"""
Flatten event attribute objects into string property maps.
Keys follow the names rule files use, e.g. `changeNumber`, `uploaderEmail`, `approvalCodeReview`.
"""
from typing import Dict, Optional
from normalize.models import Account, Approval, Change, PatchSet, RefUpdate

_REF_PREFIXES = ('refs/heads/', 'refs/tags/')

_JAVA_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
    '\b': '\\b',
    '\f': '\\f',
}


def escape_subject(text: str) -> str:
    """Backslash-escape quotes and control characters, emitting other non-ASCII characters as \\uXXXX."""
    out = []
    for ch in text or '':
        if ch in _JAVA_ESCAPES:
            out.append(_JAVA_ESCAPES[ch])
        elif 32 <= ord(ch) < 127:
            out.append(ch)
        else:
            # astral characters become a surrogate pair
            units = ch.encode('utf-16-be')
            for i in range(0, len(units), 2):
                out.append('\\u%04X' % int.from_bytes(units[i:i + 2], 'big'))
    return ''.join(out)


def short_ref_name(ref_name: str) -> str:
    for prefix in _REF_PREFIXES:
        if ref_name.startswith(prefix):
            return ref_name[len(prefix):]
    return ref_name


def _bool_text(value: Optional[bool]) -> str:
    return 'true' if value else 'false'


class AttributeExtractor:
    """Flattens attribute objects. Needs the tracker facade to format the change link."""

    def __init__(self, its):
        self.its = its

    def from_account(self, account: Optional[Account], prefix: str) -> Dict[str, str]:
        properties: Dict[str, str] = {}
        if account is None:
            return properties
        if account.email is not None:
            properties[prefix + 'Email'] = account.email
        if account.username is not None:
            properties[prefix + 'Username'] = account.username
        if account.name is not None:
            properties[prefix + 'Name'] = account.name
        return properties

    def from_change(self, change: Change) -> Dict[str, str]:
        properties = {
            'branch': change.branch,
            'topic': change.topic or '',
            'subject': change.subject,
            'escapedSubject': escape_subject(change.subject),
            'commitMessage': change.commit_message,
            'changeId': change.id,
            'changeNumber': str(change.number),
            'changeUrl': change.url,
            'formatChangeUrl': self.its.create_link_for_webui(change.url, change.url),
            'status': change.status or '',
            'private': _bool_text(change.private),
            'wip': _bool_text(change.wip),
        }
        properties.update(self.from_account(change.owner, 'owner'))
        return properties

    def from_patch_set(self, patch_set: PatchSet) -> Dict[str, str]:
        properties = {
            'revision': patch_set.revision,
            'patchSetNumber': str(patch_set.number),
            'ref': patch_set.ref,
            'createdOn': str(patch_set.created_on) if patch_set.created_on is not None else '',
            'parents': '[' + ', '.join(patch_set.parents) + ']',
            'deletions': str(patch_set.size_deletions),
            'insertions': str(patch_set.size_insertions),
        }
        properties.update(self.from_account(patch_set.uploader, 'uploader'))
        properties.update(self.from_account(patch_set.author, 'author'))
        return properties

    def from_ref_update(self, ref_update: RefUpdate) -> Dict[str, str]:
        ref_name = ref_update.ref_name
        suffix = short_ref_name(ref_name)
        return {
            'revision': ref_update.new_rev,
            'revisionOld': ref_update.old_rev,
            'ref': ref_name,
            'refSuffix': suffix,
            'refPrefix': ref_name[:len(ref_name) - len(suffix)],
        }

    def from_approval(self, approval: Approval) -> Dict[str, str]:
        return {'approval' + approval.type.replace('-', ''): approval.value}
