"""
Configuration for the tracker integration.
Settings are read from a YAML file (default: config/its.yaml) over built-in defaults;
ITS_URL, ITS_TOKEN and ITS_CONFIG_DIR environment variables override the file.
"""
import copy
import logging
import os
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern

import yaml

from normalize.models import Event

logger = logging.getLogger(__name__)

# filename used for the YAML configuration
SETTINGS_FILENAME = 'its.yaml'
ROOT_PROJECT = 'All-Projects'

DEFAULT_SETTINGS: Dict[str, Any] = {
    'its_name': 'its',
    'tracker': 'noop',  # jira or noop
    'url': '',
    'token': '',
    'commentlink': {
        'match': r'([A-Z][A-Z0-9]+-\d+)',
        'group_index': 1,
    },
    'association': 'OPTIONAL',
    'dummy_issue_pattern': '',
    'enabled': False,
    'branch': [],
    'config_dir': 'config',
    'projects_dir': '',
    'templates_dir': '',
    'repositories': '',
    'projects': {},
    'cache': {'path': '', 'ttl_seconds': 300},
    'logging': {'level': 'INFO', 'console': True, 'file': {'enabled': False, 'path': 'logs/its.log'}},
}


class AssociationPolicy(Enum):
    OPTIONAL = 'OPTIONAL'
    SUGGESTED = 'SUGGESTED'
    MANDATORY = 'MANDATORY'


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_settings_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', SETTINGS_FILENAME)


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from a YAML file if available, otherwise return defaults.
    A file that cannot be parsed is reported and ignored.
    """
    path = path or default_settings_path()
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            logger.error("Could not read settings from %s, using defaults", path, exc_info=True)
            data = {}
        if not isinstance(data, dict):
            logger.error("Settings file %s does not hold a mapping, using defaults", path)
            data = {}
    settings = _merge(DEFAULT_SETTINGS, data)
    for env_var, key in (('ITS_URL', 'url'), ('ITS_TOKEN', 'token'), ('ITS_CONFIG_DIR', 'config_dir')):
        if os.getenv(env_var):
            settings[key] = os.getenv(env_var)
    return settings


def ref_matches(ref_name: str, pattern: str) -> bool:
    """Match a ref against an exact name, a `prefix/*` wildcard, or a `^regex`."""
    if pattern.startswith('^'):
        try:
            return re.match(pattern, ref_name) is not None
        except re.error:
            logger.warning("Invalid branch pattern %s", pattern)
            return False
    if pattern.endswith('/*'):
        return ref_name.startswith(pattern[:-1])
    return ref_name == pattern


class ItsConfig:
    """Typed view over the settings dict."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings = settings if settings is not None else _merge(DEFAULT_SETTINGS, {})
        self._pattern_cache: Dict[str, Optional[Pattern]] = {}

    @property
    def its_name(self) -> str:
        return self.settings.get('its_name') or 'its'

    def _project(self, project: str) -> Dict[str, Any]:
        return (self.settings.get('projects') or {}).get(project) or {}

    # Issue association --------------------------------------------------------

    def issue_pattern(self) -> Optional[Pattern]:
        match = (self.settings.get('commentlink') or {}).get('match')
        if not match or not str(match).strip():
            return None
        if match not in self._pattern_cache:
            try:
                self._pattern_cache[match] = re.compile(match)
            except re.error:
                logger.error("Invalid issue pattern %r", match)
                self._pattern_cache[match] = None
        return self._pattern_cache[match]

    def issue_pattern_group_index(self) -> int:
        """Index of the group holding the issue id; falls back to 0 (groupless) or 1 when out of range."""
        pattern = self.issue_pattern()
        group_count = pattern.groups if pattern is not None else 0
        try:
            index = int((self.settings.get('commentlink') or {}).get('group_index', 1))
        except (TypeError, ValueError):
            index = 1
        if index < 0 or index > group_count:
            index = 0 if group_count == 0 else 1
        return index

    def association_policy(self) -> AssociationPolicy:
        raw = str(self.settings.get('association') or 'OPTIONAL').upper()
        try:
            return AssociationPolicy(raw)
        except ValueError:
            logger.warning("Unknown association policy %s, using OPTIONAL", raw)
            return AssociationPolicy.OPTIONAL

    def dummy_issue_pattern(self) -> Optional[Pattern]:
        raw = self.settings.get('dummy_issue_pattern')
        return re.compile(raw) if raw else None

    # Projects -----------------------------------------------------------------

    def parent_of(self, project: str) -> Optional[str]:
        if project == ROOT_PROJECT:
            return None
        return self._project(project).get('parent') or ROOT_PROJECT

    def project_parents(self) -> Dict[str, str]:
        return {name: cfg.get('parent') for name, cfg in (self.settings.get('projects') or {}).items() if isinstance(cfg, dict) and cfg.get('parent')}

    def lineage(self, project: str) -> List[str]:
        chain = []
        current: Optional[str] = project
        while current and current not in chain:
            chain.append(current)
            current = self.parent_of(current)
        return chain

    def its_projects(self) -> Dict[str, str]:
        return {name: cfg.get('its_project') for name, cfg in (self.settings.get('projects') or {}).items() if isinstance(cfg, dict) and cfg.get('its_project')}

    # Enablement ---------------------------------------------------------------

    def _enabled_flag(self, project: str) -> str:
        """Return 'true', 'false' or 'enforced' for the nearest setting in the project lineage."""
        lineage = self.lineage(project)
        flags = [str(self._project(name).get('enabled')).lower() for name in lineage if 'enabled' in self._project(name)]
        if 'enforced' in flags:
            return 'enforced'
        if flags:
            return flags[0]
        return 'true' if self.settings.get('enabled') else 'false'

    def _branch_patterns(self, project: str) -> List[str]:
        for name in self.lineage(project):
            patterns = self._project(name).get('branch')
            if patterns:
                return [patterns] if isinstance(patterns, str) else list(patterns)
        patterns = self.settings.get('branch') or []
        return [patterns] if isinstance(patterns, str) else list(patterns)

    def is_enabled_for(self, project: str, ref_name: str) -> bool:
        if self._enabled_flag(project) not in ('true', 'enforced'):
            return False
        patterns = self._branch_patterns(project)
        if not patterns:
            return True
        return any(ref_matches(ref_name, p) for p in patterns)

    def is_enabled(self, event: Event) -> bool:
        return self.is_enabled_for(event.project, event.ref_name)
