"""
Fire the triggering event on past commits.

    action = fire-event-on-commits since-last-tag

Collects the commits selected by the named collector, extracts the issues each one
references and runs the issue rules for them as if the event concerned those issues.
"""
import logging
from typing import Dict, List, Optional

from ingest.git import GitRepositories
from workflow.actions.base import Action, Scope

logger = logging.getLogger(__name__)

SINCE_LAST_TAG = 'since-last-tag'
ZERO_REVISION = '0' * 40


class SinceLastTagCommitCollector:
    """Walk first parents from the event revision back to the most recent tagged commit (exclusive)."""

    def __init__(self, repositories: GitRepositories):
        self.repositories = repositories

    def collect(self, properties: Dict[str, str]) -> List[str]:
        project = properties.get('project') or ''
        revision = properties.get('revision') or ''
        tagged = self.repositories.tag_revisions(project, exclude_ref=properties.get('ref'))
        commits: List[str] = []
        current: Optional[str] = revision
        while current and current != ZERO_REVISION and current not in tagged and current not in commits:
            commits.append(current)
            current = self.repositories.first_parent(project, current)
        return commits


class FireEventOnCommits(Action):
    scope = Scope.PROJECT

    def __init__(self, issue_extractor, property_extractor, collectors: Dict[str, object], controller=None):
        self.issue_extractor = issue_extractor
        self.property_extractor = property_extractor
        self.collectors = collectors
        # set once the controller exists; it runs the issue rules for the collected issues
        self.controller = controller

    def execute(self, its, target, action_request, properties):
        parameters = action_request.get_parameters()
        if len(parameters) != 1:
            logger.error("Wrong number of received parameters. Received parameters are %s. Only one parameter is expected, the collector name.", parameters)
            return
        name = parameters[0]
        collector = self.collectors.get(name)
        if collector is None:
            logger.error("No commit collector found for name %s", name)
            return
        project = properties.get('project') or ''
        issues_properties = []
        seen = set()
        for commit in collector.collect(properties):
            associations = self.issue_extractor.get_issue_ids(project, commit)
            for issue_properties in self.property_extractor.extract_issues_properties(properties, associations):
                key = tuple(sorted(issue_properties.items()))
                if key not in seen:
                    seen.add(key)
                    issues_properties.append(issue_properties)
        logger.debug("Firing %s on %d issue(s) of %s", properties.get('event-type'), len(issues_properties), project)
        if self.controller is not None:
            self.controller.handle_issues_event(issues_properties)
