"""
Add a canned comment describing the change event.
Handles abandoned, merged, restored and patch set uploaded events; other events add nothing.
"""
from typing import Dict

from workflow.actions.base import Action

# event-type -> (verb, property prefix of the acting account)
STANDARD_EVENTS = {
    'change-abandoned': ('abandoned', 'abandoner'),
    'change-merged': ('merged', 'submitter'),
    'change-restored': ('restored', 'restorer'),
    'patchset-created': ('had a related patch set uploaded', 'uploader'),
}


def _format_person(prefix: str, properties: Dict[str, str]) -> str:
    return properties.get(prefix + 'Name') or properties.get(prefix + 'Username') or ''


def standard_comment(its, verb: str, prefix: str, properties: Dict[str, str]) -> str:
    change_number = properties.get('changeNumber') or ''
    ret = 'Change ' + (change_number + ' ' if change_number else '') + verb
    person = _format_person(prefix, properties)
    if person:
        ret += ' by ' + person
    subject = properties.get('subject') or ''
    if subject:
        ret += ':\n' + subject
    reason = properties.get('reason') or ''
    if reason:
        ret += '\n\nReason:\n' + reason
    url = properties.get('changeUrl') or ''
    if url:
        ret += '\n\n' + its.create_link_for_webui(url, url)
    return ret


class AddStandardComment(Action):
    def execute(self, its, target, action_request, properties):
        event = STANDARD_EVENTS.get(properties.get('event-type') or '')
        if event is None:
            return
        verb, prefix = event
        comment = standard_comment(its, verb, prefix, properties)
        if comment:
            its.add_comment(target, comment)
