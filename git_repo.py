import logging
from typing import Optional

from commands import run_command

logger = logging.getLogger(__name__)


def commit_message(ref: str, sha: str) -> str:
    return f"Upload {ref} ⎈\n\nDerived from upstream commit {sha}"


class TargetRepository:
    def __init__(self, clone_url: str, branch: str, path: str, access_token: Optional[str] = None):
        """
        Working copy of the branch that serves the packaged charts.

        Args:
            clone_url (str): Remote URL, possibly with credentials embedded.
            branch (str): Branch to clone, commit to and push.
            path (str): Local directory for the working copy.
            access_token (str): Token to mask in logs and errors.
        """
        self.clone_url = clone_url
        self.branch = branch
        self.path = path
        self._secrets = [s for s in (access_token, clone_url) if s]

    def git(self, args, error_message, in_repo=True):
        return run_command(["git"] + args, error_message, cwd=self.path if in_repo else None, secrets=self._secrets)

    def clone(self):
        logger.info(f"Cloning branch {self.branch} into {self.path}")
        self.git(["clone", "-b", self.branch, self.clone_url, self.path],
                 f"Failed to clone branch {self.branch}", in_repo=False)

    def configure_identity(self, actor: str):
        """
        Commit as the triggering user with their noreply address.
        """
        self.git(["config", "user.name", actor], "Failed to set git user.name")
        self.git(["config", "user.email", f"{actor}@users.noreply.github.com"], "Failed to set git user.email")

    def has_changes(self) -> bool:
        status = self.git(["status", "--porcelain"], "Failed to read git status")
        return bool(status.strip())

    def commit_all(self, message: str):
        self.git(["add", "."], "Failed to stage changes")
        self.git(["commit", "-m", message], "Failed to commit changes")
        logger.info(f"Committed changes on {self.branch}")

    def push(self):
        logger.info(f"Pushing branch {self.branch}")
        self.git(["push", "-u", "origin", self.branch], f"Failed to push branch {self.branch}")
