"""Add the action's parameters as a comment."""
from workflow.actions.base import Action


class AddComment(Action):
    def execute(self, its, target, action_request, properties):
        comment = ' '.join(action_request.get_parameters())
        if comment:
            its.add_comment(target, comment)
