"""Copy the value of an event property into a tracker field of the issue."""
import logging

from workflow.actions.base import Action

logger = logging.getLogger(__name__)


class AddPropertyToField(Action):
    """Parameters: property id, field id."""

    def execute(self, its, target, action_request, properties):
        parameters = action_request.get_parameters()
        if len(parameters) != 2:
            logger.error("Wrong number of received parameters. Received parameters are %s. Two parameters are expected, the property id and the field id.", parameters)
            return
        property_id, field_id = parameters
        if not property_id.strip() or not field_id.strip():
            logger.error("Received property id or field id is blank in %s", action_request)
            return
        value = properties.get(property_id)
        if value is None or value == '':
            logger.error("No event property found for id %s", property_id)
            return
        its.add_value_to_field(target, value, field_id)
