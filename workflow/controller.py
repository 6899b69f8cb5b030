"""
Event handling: extract properties, match rules, execute the matching actions.
"""
import logging
from typing import Callable, Dict, List, Optional

from normalize.models import Event
from workflow.executor import ActionExecutor
from workflow.rule_base import RuleBase

logger = logging.getLogger(__name__)


class ActionController:
    """Runs the rules for each delivered event.

    is_enabled decides whether the tracker integration applies to an event's project and branch.
    """

    def __init__(self, property_extractor, rule_base: RuleBase, executor: ActionExecutor, is_enabled: Optional[Callable[[Event], bool]] = None):
        self.property_extractor = property_extractor
        self.rule_base = rule_base
        self.executor = executor
        self.is_enabled = is_enabled or (lambda event: True)

    def on_event(self, event: Optional[Event]):
        if event is None or event.kind is None or not event.ref_name:
            return
        if not self.is_enabled(event):
            logger.debug("ITS integration disabled for %r", event)
            return
        properties = self.property_extractor.extract_from(event)
        self.handle_project_event(properties.project_properties)
        self.handle_issues_event(properties.issues_properties)

    def handle_issues_event(self, issues_properties: List[Dict[str, str]]):
        for issue_properties in issues_properties:
            requests = self.rule_base.action_requests_for(issue_properties)
            if requests:
                self.executor.execute_on_issue(requests, issue_properties)

    def handle_project_event(self, project_properties: Dict[str, str]):
        requests = self.rule_base.action_requests_for(project_properties)
        if not requests:
            return
        if not project_properties.get('its-project'):
            logger.error(
                "Could not process project event. No its-project associated with project %s. "
                "Did you forget to configure the ITS project association?",
                project_properties.get('project'),
            )
            return
        self.executor.execute_on_project(requests, project_properties)
