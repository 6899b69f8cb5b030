"""
Jira implementation of the tracker facade, using the Jira REST API v2.
Reads go through storage.cache.rate_limited_get (issue existence is cached), writes through storage.retry.send_request.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from its.facade import ItsConnectionError, ItsError, ItsFacade
from storage.cache import Cache, rate_limited_get
from storage.retry import send_request

logger = logging.getLogger(__name__)


class JiraFacade(ItsFacade):
    """Jira client for the workflow operations.

    Issue keys are the issue ids extracted from commit messages (e.g. PROJ-42);
    `perform_action` treats its text as the name of a workflow transition.
    """

    name = 'jira'

    def __init__(self, token: str, base_url: str, cache: Optional[Cache] = None, exists_max_age: Optional[float] = 300.0):
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.api_url = f"{self.base_url}/rest/api/2"
        self.headers = {
            "Authorization": f"Bearer {self.token}" if self.token else "",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.cache = cache
        self.exists_max_age = exists_max_age

    # helper: raise for failed responses, distinguishing connectivity problems
    def _check(self, res: Dict[str, Any], what: str) -> Any:
        status = res.get('status', 0)
        if status == 0:
            raise ItsConnectionError(f"Jira unreachable while trying to {what}: {res.get('response')}")
        if not 200 <= status < 300:
            raise ItsError(f"Jira refused to {what} (HTTP {status}): {res.get('response')}")
        return res.get('response')

    def _get(self, path: str, what: str, params: Dict[str, Any] = None, cache_key: str = None, max_age: Optional[float] = None) -> Any:
        res = rate_limited_get(f"{self.api_url}{path}", headers=self.headers, params=params, cache=self.cache if cache_key else None, cache_key=cache_key, max_age=max_age)
        return self._check(res, what)

    def _send(self, method: str, path: str, body: Any, what: str) -> Any:
        res = send_request(method, f"{self.api_url}{path}", headers=self.headers, body=body)
        return self._check(res, what)

    @staticmethod
    def _issue_path(issue: str) -> str:
        return f"/issue/{quote(issue, safe='')}"

    def health_check(self) -> str:
        me = self._get('/myself', 'check the connection') or {}
        return f"Connected to Jira as {me.get('name') or me.get('displayName') or 'unknown'}"

    def exists(self, issue: str) -> bool:
        res = rate_limited_get(
            f"{self.api_url}{self._issue_path(issue)}",
            headers=self.headers,
            params={'fields': 'id'},
            cache=self.cache,
            cache_key=f"jira:issue:{issue}",
            max_age=self.exists_max_age,
        )
        if res.get('status') == 404:
            return False
        self._check(res, f"look up issue {issue}")
        return True

    def add_comment(self, issue: str, comment: str):
        logger.debug("Adding comment to %s", issue)
        self._send('POST', f"{self._issue_path(issue)}/comment", {'body': comment}, f"comment on {issue}")

    def _transitions(self, issue: str) -> List[Dict[str, Any]]:
        data = self._get(f"{self._issue_path(issue)}/transitions", f"list transitions of {issue}") or {}
        return data.get('transitions', [])

    def perform_action(self, issue: str, action: str):
        wanted = action.strip().lower()
        for transition in self._transitions(issue):
            if (transition.get('name') or '').lower() == wanted:
                self._send('POST', f"{self._issue_path(issue)}/transitions", {'transition': {'id': transition.get('id')}}, f"transition {issue}")
                return
        raise ItsError(f"No transition '{action}' available for issue {issue}")

    def add_value_to_field(self, issue: str, value: str, field_id: str):
        body = {'update': {field_id: [{'add': value}]}}
        self._send('PUT', self._issue_path(issue), body, f"add {value} to field {field_id} of {issue}")

    def create_version(self, its_project: str, version: str):
        self._send('POST', '/version', {'name': version, 'project': its_project}, f"create version {version} in {its_project}")

    def mark_version_as_released(self, its_project: str, version: str):
        versions = self._get(f"/project/{quote(its_project, safe='')}/versions", f"list versions of {its_project}") or []
        for entry in versions:
            if entry.get('name') == version:
                self._send('PUT', f"/version/{entry.get('id')}", {'released': True}, f"release version {version}")
                return
        raise ItsError(f"Version {version} not found in Jira project {its_project}")

    def create_link_for_webui(self, url: str, text: str) -> str:
        return f"[{text}|{url}]"
