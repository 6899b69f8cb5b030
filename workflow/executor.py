"""
Action dispatch.
Resolves each ActionRequest by name in an ActionRegistry and runs it against the tracker.
Every request runs on its own: a failing request is logged and the rest of the batch continues.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from workflow.action_request import ActionRequest
from workflow.actions.add_comment import AddComment
from workflow.actions.add_property_to_field import AddPropertyToField
from workflow.actions.add_standard_comment import AddStandardComment
from workflow.actions.add_template_comment import AddTemplateComment
from workflow.actions.base import Action, Scope
from workflow.actions.log_event import LogEvent
from workflow.actions.versions import CreateVersionFromProperty, MarkPropertyAsReleasedVersion

logger = logging.getLogger(__name__)

Failure = Tuple[ActionRequest, Exception]


class ActionRegistry:
    """Name -> Action table. Built-ins are registered by `default_registry`; plugins add their own."""

    def __init__(self, actions: Optional[Dict[str, Action]] = None):
        self._actions: Dict[str, Action] = dict(actions or {})

    def register(self, name: str, action: Action):
        if name in self._actions:
            logger.warning("Replacing action %s", name)
        self._actions[name] = action

    def get(self, name: str) -> Optional[Action]:
        return self._actions.get(name)

    def names(self) -> List[str]:
        return sorted(self._actions)


def default_registry(renderer=None) -> ActionRegistry:
    """Registry seeded with the built-in actions. Template comments need a renderer."""
    registry = ActionRegistry({
        'add-comment': AddComment(),
        'add-standard-comment': AddStandardComment(),
        'log-event': LogEvent(),
        'add-property-to-field': AddPropertyToField(),
        'create-version-from-property': CreateVersionFromProperty(),
        'mark-property-as-released-version': MarkPropertyAsReleasedVersion(),
    })
    if renderer is not None:
        template_comment = AddTemplateComment(renderer)
        registry.register('add-soy-comment', template_comment)
        registry.register('add-velocity-comment', template_comment)
    return registry


class ActionExecutor:
    def __init__(self, its, registry: ActionRegistry):
        self.its = its
        self.registry = registry

    def _run(self, scope: Scope, target: str, request: ActionRequest, properties: Dict[str, str]):
        action = self.registry.get(request.name)
        if action is None:
            if scope is Scope.ISSUE:
                self.its.perform_action(target, request.unparsed)
            else:
                logger.debug("No project action found for name %s", request.name)
            return
        if action.scope is not scope:
            logger.debug("Action %s is %s scoped, skipping it for %s %s", request.name, action.scope.value, scope.value, target)
            return
        action.execute(self.its, target, request, properties)

    def _execute(self, scope: Scope, target: str, requests: Iterable[ActionRequest], properties: Dict[str, str]) -> List[Failure]:
        failures: List[Failure] = []
        for request in requests:
            try:
                self._run(scope, target, request, properties)
            except Exception as ex:
                logger.exception("Error while executing action '%s' on %s %s", request, scope.value, target)
                failures.append((request, ex))
        return failures

    def execute_on_issue(self, requests: Iterable[ActionRequest], properties: Dict[str, str]) -> List[Failure]:
        """Run issue-scoped requests for `properties['issue']`. Unknown names are passed to the tracker as free-form actions."""
        return self._execute(Scope.ISSUE, properties.get('issue') or '', requests, properties)

    def execute_on_project(self, requests: Iterable[ActionRequest], properties: Dict[str, str]) -> List[Failure]:
        """Run project-scoped requests for `properties['its-project']`."""
        return self._execute(Scope.PROJECT, properties.get('its-project') or '', requests, properties)
