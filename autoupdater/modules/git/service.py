"""Git gateway: the synchronous revision-control operations the updater relies on.

Every call blocks until git returns. Setup-time failures are reported through
the ``SetupError`` family so the CLI can exit cleanly; anything that goes wrong
later surfaces as ``GitCommandError`` and is left to propagate.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional

from autoupdater.config import UpdaterError, get_settings
from autoupdater.logging_config import get_logger
from autoupdater.modules.git.models import LocalTreeOutcome, RevisionPair

logger = get_logger(__name__)

REVISION_LENGTH = 40


class SetupError(UpdaterError):
    """Raised when the local tree cannot be prepared before supervision starts."""


class PathStateError(SetupError):
    """The configured path exists but is not a directory."""


class RepositoryAccessError(SetupError):
    """The configured path could not be probed or prepared."""


class MissingRepositoryError(SetupError):
    """The configured path is absent and there is no repository to clone."""


class GitCommandError(UpdaterError):
    """A git invocation exited with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str) -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"git {' '.join(args)} failed with exit code {returncode}: {detail}")


class GitGateway:
    """Runs git commands against a local working tree."""

    def __init__(self, git_binary: Optional[str] = None) -> None:
        self._git_binary = git_binary or get_settings().autoupdater_git_binary

    def _git(self, *args: str, cwd: Optional[Path] = None, check: bool = True) -> str:
        """Run a git command and return its stdout.

        Raises ``GitCommandError`` on a non-zero exit; ``check=False`` only
        silences the error log for failures the caller expects.
        """
        cmd = [self._git_binary, *args]
        logger.debug("git_executing", command=" ".join(cmd), cwd=str(cwd) if cwd else None)
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            if check:
                logger.error(
                    "git_command_failed",
                    command=" ".join(cmd),
                    returncode=result.returncode,
                    stderr=result.stderr.strip()[:500],
                )
            raise GitCommandError(tuple(args), result.returncode, result.stderr)
        return result.stdout

    # ── Setup ────────────────────────────────────────────────────────

    def ensure_local_tree(
        self, path: Path, repository: Optional[str], branch: str,
    ) -> LocalTreeOutcome:
        """Make sure ``path`` holds an up-to-date checkout of ``branch``.

        An existing directory is fetched, switched to ``branch`` (creating a
        tracking branch from ``origin/<branch>`` when needed) and pulled. A
        missing path is cloned from ``repository``.
        """
        path = Path(path)
        try:
            is_dir = path.is_dir()
            exists = is_dir or path.exists()
        except OSError as exc:
            raise RepositoryAccessError(f"Encountered an error accessing path {path}: {exc}") from exc

        if exists and not is_dir:
            raise PathStateError(f"Path {path} exists, but is not a directory")

        if exists:
            try:
                self.fetch(path)
                self.checkout(path, branch)
                self.pull(path)
            except (GitCommandError, OSError) as exc:
                raise RepositoryAccessError(f"Encountered an error accessing path {path}: {exc}") from exc
            logger.info("local_tree_updated", path=str(path), branch=branch)
            return LocalTreeOutcome.UPDATED

        if not repository:
            raise MissingRepositoryError(
                f"Path {path} does not exist and no repository URI was given"
            )

        try:
            self.clone(repository, path, branch)
        except (GitCommandError, OSError) as exc:
            raise RepositoryAccessError(f"Failed to clone {repository} into {path}: {exc}") from exc
        logger.info("local_tree_cloned", repository=repository, path=str(path), branch=branch)
        return LocalTreeOutcome.CLONED

    def clone(self, repository: str, path: Path, branch: str) -> None:
        self._git("clone", repository, str(path), "--branch", branch)

    def checkout(self, path: Path, branch: str) -> None:
        """Check out ``branch``, creating it from ``origin/<branch>`` if absent locally."""
        try:
            self._git("checkout", branch, cwd=path, check=False)
        except GitCommandError:
            logger.info("git_checkout_tracking_branch", branch=branch)
            self._git("checkout", "-t", f"origin/{branch}", cwd=path)

    # ── Steady state ─────────────────────────────────────────────────

    def fetch(self, path: Path) -> None:
        self._git("fetch", cwd=path)

    def head_revision(self, path: Path) -> str:
        return self._git("rev-parse", "HEAD", cwd=path).strip()[:REVISION_LENGTH]

    def upstream_revision(self, path: Path) -> str:
        return self._git("rev-parse", "HEAD@{u}", cwd=path).strip()[:REVISION_LENGTH]

    def revisions(self, path: Path) -> RevisionPair:
        """Read local HEAD and its upstream as a fresh pair."""
        return RevisionPair(
            current_revision=self.head_revision(path),
            latest_revision=self.upstream_revision(path),
        )

    def pull(self, path: Path) -> None:
        self._git("pull", cwd=path)
