"""
Base class for workflow actions.
"""
from enum import Enum
from typing import Dict

from workflow.action_request import ActionRequest


class Scope(Enum):
    ISSUE = 'issue'
    PROJECT = 'project'


class Action:
    """An action runs against one target: an issue id for issue-scoped actions,
    the tracker project for project-scoped ones.
    """

    scope = Scope.ISSUE

    def execute(self, its, target: str, action_request: ActionRequest, properties: Dict[str, str]):
        raise NotImplementedError
