"""
Git and GitHub branch-and-pull-request automation.

Drives the `git` and `gh` executables through `run_cmd`. Each operation
returns None or False when a command fails; the command's stderr is logged.
"""
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..utils.process import ProcessResult, run_cmd


class GitWorkflow:
    """
    Branch and pull-request operations on one local repository.

    Attributes:
        repo_dir: Working tree the commands run in.
        git_cmd: git executable.
        gh_cmd: GitHub CLI executable.
        remote: Remote that branches are pushed to.
    """

    def __init__(self, repo_dir: Path, git_cmd: str = "git", gh_cmd: str = "gh", remote: str = "origin"):
        self.repo_dir = repo_dir
        self.git_cmd = git_cmd
        self.gh_cmd = gh_cmd
        self.remote = remote

    def _git(self, *args: str) -> ProcessResult:
        result = run_cmd([self.git_cmd, *args], cwd=self.repo_dir)
        if not result.succeeded:
            logger.error(f"git {' '.join(args)} failed (exit code {result.exit_code}): {result.stderr.strip()}")
        return result

    def current_branch(self) -> Optional[str]:
        result = self._git("rev-parse", "--abbrev-ref", "HEAD")
        if not result.succeeded:
            return None
        return result.stdout.strip() or None

    def create_branch(self, name: str, base: Optional[str] = None) -> bool:
        """Creates `name` (from `base` when given) and checks it out."""
        args = ["checkout", "-b", name]
        if base:
            args.append(base)
        if not self._git(*args).succeeded:
            return False
        logger.info(f"Created branch {name}" + (f" from {base}" if base else ""))
        return True

    def push_branch(self, name: Optional[str] = None) -> bool:
        """Pushes the branch and sets its upstream."""
        branch = name or self.current_branch()
        if not branch:
            return False
        if not self._git("push", "--set-upstream", self.remote, branch).succeeded:
            return False
        logger.info(f"Pushed {branch} to {self.remote}")
        return True

    def start_feature(self, name: str, base: str = "main") -> bool:
        """
        Starts a feature branch from an up-to-date base branch.

        Runs fetch, checkout of `base`, a fast-forward pull, then creates `name`.
        Stops at the first failing step.
        """
        steps: List[List[str]] = [
            ["fetch", self.remote],
            ["checkout", base],
            ["pull", "--ff-only", self.remote, base],
        ]
        for step in steps:
            if not self._git(*step).succeeded:
                return False
        return self.create_branch(name)

    def create_pull_request(
        self,
        title: str,
        body: str = "",
        base: Optional[str] = None,
        draft: bool = False,
    ) -> Optional[str]:
        """
        Opens a pull request for the current branch with `gh pr create`.

        Returns:
            The pull request URL printed by gh, or None on failure.
        """
        cmd = [self.gh_cmd, "pr", "create", "--title", title, "--body", body]
        if base:
            cmd += ["--base", base]
        if draft:
            cmd.append("--draft")
        result = run_cmd(cmd, cwd=self.repo_dir)
        if not result.succeeded:
            logger.error(f"gh pr create failed (exit code {result.exit_code}): {result.stderr.strip()}")
            return None
        lines = result.stdout.strip().splitlines()
        url = lines[-1].strip() if lines else ""
        logger.info(f"Opened pull request: {url}")
        return url or None
