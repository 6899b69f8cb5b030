"""Log the properties of the event, at the level given as first parameter."""
import logging

from workflow.actions.base import Action

logger = logging.getLogger(__name__)

LEVELS = {
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
}


class LogEvent(Action):
    def execute(self, its, target, action_request, properties):
        level = LEVELS.get(action_request.get_parameter(1).lower(), logging.INFO)
        for key in sorted(properties):
            logger.log(level, "[%s = %s]", key, properties[key])
