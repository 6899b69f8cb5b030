"""
Issue tracker facade: the operations the workflow performs on a tracker.
"""
import logging

logger = logging.getLogger(__name__)


class ItsError(Exception):
    """Raised when the tracker rejects a request or cannot be reached."""


class ItsConnectionError(ItsError):
    """The tracker could not be reached."""


class ItsFacade:
    """Base class for tracker integrations. Concrete trackers override every operation."""

    name = 'its'

    def health_check(self) -> str:
        raise NotImplementedError

    def exists(self, issue: str) -> bool:
        raise NotImplementedError

    def add_comment(self, issue: str, comment: str):
        raise NotImplementedError

    def perform_action(self, issue: str, action: str):
        """Run a free-form tracker instruction (e.g. a workflow transition) on an issue."""
        raise NotImplementedError

    def add_value_to_field(self, issue: str, value: str, field_id: str):
        raise NotImplementedError

    def create_version(self, its_project: str, version: str):
        raise NotImplementedError

    def mark_version_as_released(self, its_project: str, version: str):
        raise NotImplementedError

    def create_link_for_webui(self, url: str, text: str) -> str:
        if not text or text == url:
            return url
        return f"{text} ({url})"


class NoopFacade(ItsFacade):
    """Facade that only logs what it would do. Used for dry runs."""

    name = 'noop'

    def health_check(self) -> str:
        return 'noop'

    def exists(self, issue: str) -> bool:
        logger.info("exists(%s)", issue)
        return False

    def add_comment(self, issue: str, comment: str):
        logger.info("add_comment(%s): %s", issue, comment)

    def perform_action(self, issue: str, action: str):
        logger.info("perform_action(%s): %s", issue, action)

    def add_value_to_field(self, issue: str, value: str, field_id: str):
        logger.info("add_value_to_field(%s): %s=%s", issue, field_id, value)

    def create_version(self, its_project: str, version: str):
        logger.info("create_version(%s): %s", its_project, version)

    def mark_version_as_released(self, its_project: str, version: str):
        logger.info("mark_version_as_released(%s): %s", its_project, version)

    def create_link_for_webui(self, url: str, text: str) -> str:
        return ''
