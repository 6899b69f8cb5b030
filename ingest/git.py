"""
Read-only access to project repositories through the git command line.
Repositories live under a base directory as `<project>.git` (bare) or `<project>` (work tree).
"""
import logging
import os
import subprocess
from typing import List, Optional, Set

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git command fails or a repository cannot be found."""


class GitRepositories:
    def __init__(self, base_path: str, git_binary: str = 'git'):
        self.base_path = base_path
        self.git_binary = git_binary

    def path_for(self, project: str) -> str:
        for candidate in (project + '.git', project):
            path = os.path.join(self.base_path, candidate)
            if os.path.isdir(path):
                return path
        raise GitError(f"Repository for project {project} not found under {self.base_path}")

    def run(self, project: str, *args: str) -> str:
        path = self.path_for(project)
        cmd = [self.git_binary, '-C', path] + list(args)
        logger.debug("Running %s", ' '.join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as ex:
            raise GitError(f"Could not run git for {project}: {ex}") from ex
        if proc.returncode != 0:
            raise GitError(f"git {' '.join(args)} failed for {project}: {proc.stderr.strip()}")
        return proc.stdout

    def object_type(self, project: str, revision: str) -> Optional[str]:
        """Return the object type (commit, tree, blob, tag) or None for a missing object."""
        try:
            return self.run(project, 'cat-file', '-t', revision).strip() or None
        except GitError:
            return None

    def commit_message(self, project: str, revision: str) -> str:
        return self.run(project, 'log', '-1', '--format=%B', revision)

    def resolve(self, project: str, ref: str) -> Optional[str]:
        try:
            out = self.run(project, 'rev-parse', '--verify', '-q', ref + '^{commit}')
        except GitError:
            return None
        return out.strip() or None

    def first_parent(self, project: str, revision: str) -> Optional[str]:
        parts = self.run(project, 'rev-list', '--parents', '-n', '1', revision).split()
        return parts[1] if len(parts) > 1 else None

    def tag_revisions(self, project: str, exclude_ref: Optional[str] = None) -> Set[str]:
        """Return the commits tags point at (annotated tags peeled)."""
        out = self.run(project, 'for-each-ref', '--format=%(refname) %(objectname) %(*objectname)', 'refs/tags')
        revisions: Set[str] = set()
        for line in out.splitlines():
            parts: List[str] = line.split()
            if len(parts) < 2 or parts[0] == exclude_ref:
                continue
            revisions.add(parts[2] if len(parts) > 2 else parts[1])
        return revisions
