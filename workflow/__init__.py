"""
Workflow package: rules, action dispatch and event handling.
"""

from .action_request import ActionRequest
from .rules import Condition, Rule
from .rule_base import RuleBase, ProjectRulesCache
from .executor import ActionExecutor, ActionRegistry, default_registry
from .controller import ActionController

__all__ = ["ActionRequest", "Condition", "Rule", "RuleBase", "ProjectRulesCache", "ActionExecutor", "ActionRegistry", "default_registry", "ActionController"]
