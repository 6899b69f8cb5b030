"""
Rule sources: global and tracker-specific rule files, and per-project overrides.
"""
import logging
import os
import threading
from typing import Dict, List, Mapping, Optional, Tuple

from normalize.models import Event, EventKind
from workflow.action_request import ActionRequest
from workflow.rules import Rule, match_rules
from workflow.rules_reader import RulesConfigError, read_rules_file

logger = logging.getLogger(__name__)

GLOBAL_RULES_FILE = 'actions.config'
PROJECT_CONFIG_REF = 'refs/meta/config'
ROOT_PROJECT = 'All-Projects'


def plugin_rules_file(its_name: str) -> str:
    return f"actions-{its_name}.config"


def load_rules(path: str) -> List[Rule]:
    """Read rules from `path`; a missing file gives no rules, a broken one is logged and gives no rules."""
    if not os.path.exists(path):
        return []
    try:
        return read_rules_file(path)
    except (RulesConfigError, OSError, UnicodeDecodeError):
        logger.error("Invalid ITS action configuration in %s", path, exc_info=True)
        return []


class ProjectRulesCache:
    """Per-project rule overrides, read from `<projects_dir>/<project>/actions*.config`.

    A project without rules of its own inherits the rules of the nearest ancestor that has
    some. `parents` maps a project to its parent; projects without an entry inherit from
    All-Projects.
    """

    def __init__(self, projects_dir: str, its_name: str, parents: Optional[Mapping[str, str]] = None, root_project: str = ROOT_PROJECT):
        self.projects_dir = projects_dir
        self.its_name = its_name
        self.parents = dict(parents or {})
        self.root_project = root_project
        self._cache: Dict[str, Tuple[Rule, ...]] = {}
        self._lock = threading.RLock()

    def lineage(self, project: str) -> List[str]:
        """Return the project followed by its ancestors, nearest first."""
        chain = []
        current = project
        while current and current not in chain:
            chain.append(current)
            if current == self.root_project:
                break
            current = self.parents.get(current, self.root_project)
        return chain

    def _read_project(self, project: str) -> List[Rule]:
        directory = os.path.join(self.projects_dir, project)
        rules = load_rules(os.path.join(directory, GLOBAL_RULES_FILE))
        rules.extend(load_rules(os.path.join(directory, plugin_rules_file(self.its_name))))
        return rules

    def rules_for(self, project: str) -> Tuple[Rule, ...]:
        with self._lock:
            cached = self._cache.get(project)
        if cached is not None:
            return cached
        rules: Tuple[Rule, ...] = ()
        for name in self.lineage(project):
            rules = tuple(self._read_project(name))
            if rules:
                break
        with self._lock:
            self._cache[project] = rules
        return rules

    def invalidate(self, project: str):
        """Drop cached rules of `project` and of every cached project inheriting from it."""
        with self._lock:
            for name in list(self._cache):
                if project in self.lineage(name):
                    del self._cache[name]
        logger.debug("Invalidated ITS rules of %s", project)


class RulesRefresher:
    """Invalidate project rules when a project's configuration ref changes."""

    def __init__(self, project_rules: ProjectRulesCache):
        self.project_rules = project_rules

    def on_event(self, event: Event):
        if event.kind is EventKind.REF_UPDATED and event.ref_name == PROJECT_CONFIG_REF:
            self.project_rules.invalidate(event.project)


class RuleBase:
    """The rules in effect.

    Global rules come from `actions.config` and tracker-specific rules from
    `actions-<its_name>.config` in `config_dir`. A project with override rules uses only
    those. The loaded rules are published as one immutable tuple: `reload` swaps it under a
    lock, readers use whatever tuple is current.
    """

    def __init__(self, config_dir: str, its_name: str, project_rules: Optional[ProjectRulesCache] = None):
        self.config_dir = config_dir
        self.its_name = its_name
        self.project_rules = project_rules
        self._reload_lock = threading.Lock()
        self._rules: Tuple[Rule, ...] = ()
        self.reload()

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def reload(self):
        global_path = os.path.join(self.config_dir, GLOBAL_RULES_FILE)
        plugin_path = os.path.join(self.config_dir, plugin_rules_file(self.its_name))
        with self._reload_lock:
            if not os.path.exists(global_path) and not os.path.exists(plugin_path):
                logger.debug("Neither global rule file %s nor ITS specific rule file %s exist. Please configure rules.", global_path, plugin_path)
            rules = load_rules(global_path) + load_rules(plugin_path)
            self._rules = tuple(rules)
        logger.debug("Loaded %d ITS rules from %s", len(rules), self.config_dir)

    def rules_for(self, project: Optional[str]) -> Tuple[Rule, ...]:
        if project and self.project_rules is not None:
            project_rules = self.project_rules.rules_for(project)
            if project_rules:
                return project_rules
        return self._rules

    def action_requests_for(self, properties: Mapping[str, str]) -> List[ActionRequest]:
        return match_rules(self.rules_for(properties.get('project')), properties)
