"""
Wiring: build the tracker facade and the event pipeline from settings.
"""
import logging
import os
from typing import Optional

from correlate.attributes import AttributeExtractor
from correlate.issue_extractor import IssueExtractor
from correlate.properties import PropertyExtractor
from ingest.commits import CommitMessageFetcher, PatchSetLookup
from ingest.git import GitRepositories
from its.config import ItsConfig
from its.facade import ItsFacade, NoopFacade
from its.jira import JiraFacade
from normalize.models import EventKind
from report.renderer import CommentRenderer
from storage.cache import Cache
from workflow.actions.fire_event_on_commits import SINCE_LAST_TAG, FireEventOnCommits, SinceLastTagCommitCollector
from workflow.controller import ActionController
from workflow.executor import ActionExecutor, ActionRegistry, default_registry
from workflow.rule_base import ProjectRulesCache, RuleBase, RulesRefresher

logger = logging.getLogger(__name__)

# Events whose change message is the message of the patch set they carry
OWN_MESSAGE_KINDS = (EventKind.PATCHSET_CREATED, EventKind.DRAFT_PUBLISHED)


def build_facade(config: ItsConfig, cache: Optional[Cache] = None, dry_run: bool = False) -> ItsFacade:
    tracker = str(config.settings.get('tracker') or 'noop').lower()
    if dry_run or tracker == 'noop':
        return NoopFacade()
    if tracker == 'jira':
        url = config.settings.get('url') or ''
        if not url:
            raise ValueError("Jira tracker configured without a url")
        return JiraFacade(config.settings.get('token') or '', url, cache=cache)
    raise ValueError(f"Unknown tracker {tracker}")


class Pipeline:
    """Everything needed to process events, built once at startup."""

    def __init__(self, config: ItsConfig, its: ItsFacade, registry: Optional[ActionRegistry] = None):
        self.config = config
        self.its = its
        settings = config.settings
        repos_dir = settings.get('repositories') or ''
        self.repositories = GitRepositories(repos_dir) if repos_dir else None
        self.commits = CommitMessageFetcher(self.repositories)
        self.patch_sets = PatchSetLookup(self.repositories)
        self.issue_extractor = IssueExtractor(config.issue_pattern(), config.issue_pattern_group_index(), self.commits, self.patch_sets)
        self.property_extractor = PropertyExtractor(self.issue_extractor, AttributeExtractor(its), config.its_name, config.its_projects())

        config_dir = settings.get('config_dir') or 'config'
        projects_dir = settings.get('projects_dir') or os.path.join(config_dir, 'projects')
        self.project_rules = ProjectRulesCache(projects_dir, config.its_name, config.project_parents())
        self.refresher = RulesRefresher(self.project_rules)
        self.rule_base = RuleBase(config_dir, config.its_name, self.project_rules)

        templates_dir = settings.get('templates_dir') or os.path.join(config_dir, 'templates')
        self.renderer = CommentRenderer(templates_dir if os.path.isdir(templates_dir) else None)
        self.registry = registry or default_registry(self.renderer)
        collectors = {SINCE_LAST_TAG: SinceLastTagCommitCollector(self.repositories)} if self.repositories else {}
        fire_event = FireEventOnCommits(self.issue_extractor, self.property_extractor, collectors)
        if self.registry.get('fire-event-on-commits') is None:
            self.registry.register('fire-event-on-commits', fire_event)
        self.executor = ActionExecutor(its, self.registry)
        self.controller = ActionController(self.property_extractor, self.rule_base, self.executor, config.is_enabled)
        fire_event.controller = self.controller

    def handle(self, event):
        """Process one event: remember its commit data, refresh rules on config changes, run the rules."""
        if event is None:
            return
        if event.change is not None:
            self._remember_message(event)
        self.patch_sets.record(event)
        self.refresher.on_event(event)
        self.controller.on_event(event)

    def _remember_message(self, event):
        # change.commitMessage is the message of the change's current patch set
        if event.patch_set is None:
            return
        if event.kind in OWN_MESSAGE_KINDS:
            self.commits.remember(event.project, event.revision or '', event.change.commit_message)
            return
        latest = self.patch_sets.latest_patch_set(event.project, event.change.number)
        if latest is not None and event.patch_set.number < latest:
            return
        self.commits.remember(event.project, event.revision or '', event.change.commit_message, overwrite=False)
