"""Publishing services: persist a localized post, commit it and deploy the site.

Git and the site generator are driven through their command-line tools.
"""

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Literal

import anyio

from mdassets.config.constants import CATEGORY_DEPLOY, CATEGORY_FILE, CATEGORY_GIT
from mdassets.config.settings import DeployConfig, GitConfig
from mdassets.exceptions import FilesystemError, PublishError
from mdassets.utils.fs import ensure_directory, get_unique_path
from mdassets.utils.logging import BoundLogger, get_logger

_CONFLICT_MARKERS = ("would be overwritten", "conflict")


def run_command(
    args: Sequence[str], cwd: Path, logger: BoundLogger | None = None
) -> subprocess.CompletedProcess[str]:
    """Run an external command and capture its output.

    Raises:
        PublishError: If the command is missing or exits non-zero
    """
    log = logger or get_logger(__name__)
    command = list(args)
    log.debug("Running command", command=" ".join(command), cwd=str(cwd))
    try:
        return subprocess.run(command, cwd=cwd, check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise PublishError(command, f"{command[0]} not found") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise PublishError(command, f"exit code {e.returncode}", stderr=stderr or None) from e


class DocumentWriter:
    """Write rewritten documents into a target directory.

    Conflict strategies:
    - "skip": raise if the file exists
    - "overwrite": replace the existing file
    - "rename": add a numeric suffix to the filename
    """

    def __init__(
        self,
        on_conflict: Literal["skip", "overwrite", "rename"] = "overwrite",
        logger: BoundLogger | None = None,
    ) -> None:
        self.on_conflict = on_conflict
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_FILE)

    def resolve_conflict(self, path: Path) -> Path:
        """Resolve an output path against an existing file.

        Raises:
            FilesystemError: If strategy is "skip" and the file exists
        """
        if not path.exists() or self.on_conflict == "overwrite":
            return path
        if self.on_conflict == "skip":
            raise FilesystemError(path, "output file already exists")
        return get_unique_path(path)

    async def write(self, content: str, directory: Path, filename: str) -> Path:
        """Write ``content`` to ``directory/filename`` and verify it landed.

        Args:
            content: Document text
            directory: Target directory, created if missing
            filename: Target filename

        Returns:
            Path of the written file

        Raises:
            FilesystemError: If the file cannot be written
        """
        if not directory.exists():
            self._log.info("Creating output directory", path=str(directory))
        ensure_directory(directory)
        target = self.resolve_conflict(directory / filename)

        try:
            async with await anyio.open_file(target, "w", encoding="utf-8") as f:
                await f.write(content)
            size = target.stat().st_size
        except OSError as e:
            raise FilesystemError(target, "cannot write document", cause=e) from e

        self._log.info("Document saved", path=str(target), size=size)
        return target


async def save_document(
    content: str,
    posts_dir: Path,
    filename: str,
    on_conflict: Literal["skip", "overwrite", "rename"] = "overwrite",
    logger: BoundLogger | None = None,
) -> Path:
    """Save a localized post into the site's posts directory."""
    return await DocumentWriter(on_conflict=on_conflict, logger=logger).write(
        content, posts_dir, filename
    )


class GitPublisher:
    """Commit and push a published post in the site repository."""

    def __init__(
        self,
        repo: Path,
        config: GitConfig | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self.repo = Path(repo)
        self.config = config or GitConfig()
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_GIT)

    def _git(self, *args: str) -> subprocess.CompletedProcess[str]:
        return run_command(["git", *args], cwd=self.repo, logger=self._log)

    def pull(self) -> None:
        """Pull the configured branch, stashing local changes on conflict.

        A pull failure that is not caused by local changes is logged and
        ignored, the commit still happens locally.

        Raises:
            PublishError: If the stash-and-pull recovery fails
        """
        remote, branch = self.config.remote, self.config.branch
        try:
            result = self._git("pull", remote, branch)
            self._log.info("Pulled latest changes", output=result.stdout.strip())
            return
        except PublishError as e:
            details = f"{e} {e.stderr or ''}".lower()
            self._log.warning("Pull failed", error=str(e), stderr=e.stderr)
            if not any(marker in details for marker in _CONFLICT_MARKERS):
                return

        self._log.info("Local changes block the pull, stashing them")
        self._git("stash")
        self._git("pull", remote, branch)
        self._git("stash", "pop")
        self._log.info("Pull completed after stashing")

    def has_staged_changes(self) -> bool:
        return bool(self._git("diff", "--cached", "--name-only").stdout.strip())

    def commit_and_push(self, name: str, paths: Sequence[Path] | None = None) -> bool:
        """Commit the post and optionally push it.

        Args:
            name: Post name used in the commit message
            paths: Files to stage (the whole work tree if omitted)

        Returns:
            True if a commit was created, False if nothing was staged

        Raises:
            PublishError: If a git command fails
        """
        status = self._git("status", "--porcelain").stdout.strip()
        if status:
            self._log.debug("Uncommitted changes present", files=len(status.splitlines()))

        self.pull()

        targets = [str(p) for p in paths] if paths else ["."]
        self._git("add", "--", *targets)

        if not self.has_staged_changes():
            self._log.info("Nothing to commit")
            return False

        message = f"{self.config.commit_prefix} {name}".strip()
        self._git("commit", "-m", message)
        self._log.info("Committed", message=message)

        if self.config.auto_push:
            self._git("push", self.config.remote, self.config.branch)
            self._log.info("Pushed", remote=self.config.remote, branch=self.config.branch)

        return True


class SiteDeployer:
    """Regenerate and deploy a Hexo-style static site."""

    def __init__(
        self,
        site_dir: Path,
        config: DeployConfig | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self.site_dir = Path(site_dir)
        self.config = config or DeployConfig()
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_DEPLOY)

    def deploy(self) -> None:
        """Run clean (optional), generate and deploy.

        Raises:
            PublishError: If any generator command fails
        """
        steps = ["generate", "deploy"]
        if self.config.clean_before_generate:
            steps.insert(0, "clean")

        for step in steps:
            result = run_command([self.config.generator, step], cwd=self.site_dir, logger=self._log)
            self._log.info("Site step finished", step=step, output=result.stdout.strip()[-200:])
