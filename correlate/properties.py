"""
Property extraction: fold one event into flat property maps.
Produces one project-level map and one map per issue referenced by the event's revision.
"""
import logging
from typing import Callable, Dict, List, Optional

from correlate.attributes import AttributeExtractor
from correlate.issue_extractor import Associations, IssueExtractor, render_associations
from normalize.models import Event, EventKind

logger = logging.getLogger(__name__)

ZERO_REVISION = '0' * 40

Properties = Dict[str, str]


class RefEventProperties:
    """
    Properties of a single ref event: the project-level map and one map per issue.
    """
    def __init__(self, project_properties: Properties, issues_properties: List[Properties]):
        self.project_properties = project_properties
        self.issues_properties = issues_properties


class PropertyExtractor:
    """Build property maps for events.

    its_projects maps a repository project to the tracker project it is associated with;
    projects without an entry get no `its-project` property.
    """

    def __init__(self, issue_extractor: IssueExtractor, attributes: AttributeExtractor, its_name: str = 'its', its_projects: Optional[Dict[str, str]] = None):
        self.issue_extractor = issue_extractor
        self.attributes = attributes
        self.its_name = its_name
        self.its_projects = its_projects or {}
        self._kind_properties: Dict[EventKind, Callable[[Event], Properties]] = {
            EventKind.PATCHSET_CREATED: self._no_extras,
            EventKind.DRAFT_PUBLISHED: self._no_extras,
            EventKind.CHANGE_MERGED: self._no_extras,
            EventKind.CHANGE_ABANDONED: self._reason,
            EventKind.CHANGE_RESTORED: self._reason,
            EventKind.COMMENT_ADDED: self._comment,
            EventKind.REF_UPDATED: self._ref_update,
        }

    # helper: per-kind constants merged into the base properties
    def _no_extras(self, event: Event) -> Properties:
        return {}

    def _reason(self, event: Event) -> Properties:
        return {'reason': event.reason or ''}

    def _comment(self, event: Event) -> Properties:
        properties: Properties = {}
        for approval in event.approvals:
            properties.update(self.attributes.from_approval(approval))
        properties['comment'] = event.comment or ''
        return properties

    def _ref_update(self, event: Event) -> Properties:
        return self.attributes.from_ref_update(event.ref_update)

    def base_properties(self, event: Event) -> Properties:
        kind = event.kind
        properties: Properties = {'event': kind.event_name, 'event-type': kind.value}
        properties.update(self.attributes.from_account(event.account, kind.account_role))
        properties.update(self._kind_properties[kind](event))
        if kind.is_change_event:
            properties.update(self.attributes.from_change(event.change))
            properties.update(self.attributes.from_patch_set(event.patch_set))
        project = event.project
        properties['project'] = project
        its_project = self.its_projects.get(project)
        if its_project:
            properties['its-project'] = its_project
        return properties

    def _associations(self, event: Event) -> Associations:
        if event.kind.is_change_event:
            patch_set = event.patch_set
            if not patch_set.revision:
                return {}
            return self.issue_extractor.get_issue_ids(event.project, patch_set.revision, (event.change.number, patch_set.number))
        revision = event.revision
        if not revision or revision == ZERO_REVISION:
            return {}
        return self.issue_extractor.get_issue_ids(event.project, revision)

    def extract_issues_properties(self, common: Properties, associations: Associations) -> List[Properties]:
        """Build one issue map per associated issue, sorted by issue id."""
        ret = []
        for issue in sorted(associations):
            properties = dict(common)
            properties['issue'] = issue
            properties['its-name'] = self.its_name
            properties['association'] = render_associations(associations[issue])
            ret.append(properties)
        return ret

    def extract_from(self, event: Event) -> RefEventProperties:
        base = self.base_properties(event)
        associations = self._associations(event)
        logger.debug("Event %r references issues %s", event, sorted(associations))
        return RefEventProperties(base, self.extract_issues_properties(base, associations))
