"""Project actions creating and releasing tracker versions named by an event property."""
import logging
from typing import Dict, Optional

from workflow.action_request import ActionRequest
from workflow.actions.base import Action, Scope

logger = logging.getLogger(__name__)


def _property_value(action_request: ActionRequest, properties: Dict[str, str]) -> Optional[str]:
    parameters = action_request.get_parameters()
    if len(parameters) != 1:
        logger.error("Wrong number of received parameters. Received parameters are %s. Only one parameter is expected, the property id.", parameters)
        return None
    property_id = parameters[0]
    if not property_id.strip():
        logger.error("Received property id is blank")
        return None
    value = properties.get(property_id)
    if not value:
        logger.error("No event property found for id %s", property_id)
        return None
    return value


class CreateVersionFromProperty(Action):
    scope = Scope.PROJECT

    def execute(self, its, target, action_request, properties):
        version = _property_value(action_request, properties)
        if version is not None:
            its.create_version(target, version)


class MarkPropertyAsReleasedVersion(Action):
    scope = Scope.PROJECT

    def execute(self, its, target, action_request, properties):
        version = _property_value(action_request, properties)
        if version is not None:
            its.mark_version_as_released(target, version)
