"""Diff assembly shared by all backends.

Contains:
- DiffAssembler: Build diff text for explicit files or a whole-repository scope
- should_exclude_file: Check if a file matches an exclusion pattern
- format_section: Render one per-file section with its header
"""

import fnmatch
from pathlib import PurePosixPath
from typing import Mapping, Optional, Sequence

from scmdiff.backends import VcsBackend
from scmdiff.config import ScmSettings
from scmdiff.exceptions import CommandFailedError, CommandTimeoutError, NoChangesError
from scmdiff.host import Notifier
from scmdiff.logging_config import get_logger
from scmdiff.models import (
    DiffResult,
    DiffTarget,
    FileChange,
    FileStatus,
    RenameInfo,
    RepositoryContext,
    VcsType,
)
from scmdiff.paths import is_absolute, is_descendant, relative_to
from scmdiff.simplify import simplify_diff
from scmdiff.status import StatusClassifier

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n...[truncated]\n"


def should_exclude_file(filename: str, patterns: Sequence[str]) -> bool:
    """Check if a file should be excluded based on patterns.

    Supports glob patterns like *.lock, build/*, etc.

    Args:
        filename: The repository-relative path to check.
        patterns: List of patterns to match against.

    Returns:
        True if the file should be excluded.
    """
    for pattern in patterns:
        if filename == pattern:
            return True
        if fnmatch.fnmatch(filename, pattern):
            return True
        # Patterns without a directory part also match the basename
        if fnmatch.fnmatch(PurePosixPath(filename).name, pattern):
            return True
    return False


def format_section(change: FileChange, body: str) -> str:
    """Render ``=== <Status>: <path> ===`` followed by the diff body."""
    status = change.effective_status
    if status == FileStatus.RENAMED and change.rename_info is not None:
        name = change.rename_info.descriptor
    else:
        name = change.path
    header = f"=== {status.label}: {name} ==="
    if body and not body.endswith("\n"):
        body += "\n"
    return f"{header}\n{body}"


class DiffAssembler:
    """Compose backend primitives into a single diff text."""

    def __init__(
        self,
        backends: Mapping[VcsType, VcsBackend],
        classifier: StatusClassifier,
        settings: ScmSettings,
        notifier: Optional[Notifier] = None,
        windows: Optional[bool] = None,
    ):
        self.backends = backends
        self.classifier = classifier
        self.settings = settings
        self.notifier = notifier
        self.windows = windows

    def _notify(self, level: str, key: str, **kwargs) -> None:
        if self.notifier is not None and self.settings.show_notifications:
            getattr(self.notifier, level)(key, **kwargs)

    def _excluded(self, path: str) -> bool:
        return should_exclude_file(path, self.settings.exclude_patterns)

    async def assemble(
        self,
        ctx: RepositoryContext,
        files: Optional[Sequence[str]] = None,
        target: DiffTarget = DiffTarget.ALL,
    ) -> DiffResult:
        """Build the diff for ``files`` or, without files, for ``target``.

        Args:
            ctx: Repository to diff.
            files: Absolute or repository-relative paths. Files outside the
                repository are dropped with a warning.
            target: STAGED or ALL; ignored when ``files`` is given.

        Returns:
            DiffResult with the assembled text.

        Raises:
            ValueError: If ``target`` is AUTO.
            NoChangesError: If the diff is empty.
            CommandFailedError: If a backend command fails.
        """
        if target == DiffTarget.AUTO:
            raise ValueError("Diff target must be resolved before assembly")

        backend = self.backends[ctx.vcs_type]

        if files:
            content, paths = await self._diff_files(backend, ctx, files)
            notify_key = "diff.files.selected"
        elif target == DiffTarget.STAGED:
            content, paths = self._join(await backend.staged_changes(ctx))
            notify_key = "diff.staged.info"
        else:
            content, paths = await self._diff_all(backend, ctx)
            notify_key = "diff.all.info"

        if not content.strip():
            raise NoChangesError(
                "No staged changes found" if target == DiffTarget.STAGED and not files
                else "No changes detected",
                scm_type=ctx.vcs_type.value,
                operation="diff",
                details={"target": target.value, "repository": ctx.root_path},
            )

        max_chars = self.settings.max_diff_chars
        if max_chars and len(content) > max_chars:
            content = content[:max_chars] + TRUNCATION_MARKER
            self._notify("warn", "diff.truncated", limit=max_chars)

        if self.settings.simplify_diff:
            content = simplify_diff(content)
            self._notify("warn", "diff.simplified")

        self._notify("info", notify_key, count=len(paths))
        return DiffResult(
            content=content,
            target=target,
            files=paths,
            repository_path=ctx.root_path,
        )

    def _join(self, sections: Sequence[tuple[str, str]]) -> tuple[str, list[str]]:
        kept = [(path, text) for path, text in sections if not self._excluded(path)]
        return "".join(text for _, text in kept), [path for path, _ in kept]

    async def _diff_all(self, backend: VcsBackend, ctx: RepositoryContext) -> tuple[str, list[str]]:
        content, paths = self._join(await backend.all_changes(ctx))

        parts = [content] if content else []
        for path in await backend.untracked_files(ctx):
            if self._excluded(path) or path in paths:
                continue
            body = await backend.new_file_diff(ctx, path)
            parts.append(format_section(FileChange(path=path, status=FileStatus.NEW), body))
            paths.append(path)

        return "\n".join(parts), paths

    async def _rename_map(self, backend: VcsBackend, ctx: RepositoryContext) -> dict[str, RenameInfo]:
        try:
            return await backend.rename_map(ctx)
        except (CommandFailedError, CommandTimeoutError) as e:
            logger.warning("Rename detection failed in %s: %s", ctx.root_path, e)
            return {}

    def _requested_paths(self, ctx: RepositoryContext, files: Sequence[str]) -> dict[str, str]:
        """Map repository-relative paths to the paths the caller passed, in order."""
        requested: dict[str, str] = {}
        outside: list[str] = []
        for file in files:
            if is_absolute(file) and not is_descendant(file, ctx.root_path, self.windows):
                outside.append(file)
                continue
            path = relative_to(file, ctx.root_path, self.windows)
            if not path or path in requested:
                continue
            if self._excluded(path):
                logger.debug("Excluding %s by pattern", path)
                continue
            requested[path] = file

        if outside:
            logger.warning(
                "Ignoring %d file(s) outside %s: %s", len(outside), ctx.root_path, ", ".join(outside)
            )
            self._notify("warn", "diff.files.outside", count=len(outside), root=ctx.root_path)
        return requested

    async def _diff_files(
        self, backend: VcsBackend, ctx: RepositoryContext, files: Sequence[str]
    ) -> tuple[str, list[str]]:
        requested = self._requested_paths(ctx, files)
        if not requested:
            return "", []

        rename_map = await self._rename_map(backend, ctx)
        wanted = set(requested)
        # Old sides whose new side is also requested are covered by the new side's section
        covered_old = {
            rename.old_path for new_path, rename in rename_map.items()
            if new_path in wanted and rename.old_path != new_path
        }

        sections: list[str] = []
        paths: list[str] = []
        for path in requested:
            if path in covered_old:
                logger.debug("Skipping %s, covered by its rename target", path)
                continue
            change = await self.classifier.classify(path, ctx, rename_map)
            body = await self._file_body(backend, ctx, change)
            if not body.strip() and change.effective_status != FileStatus.DELETED:
                logger.debug("No diff output for %s", path)
                continue
            sections.append(format_section(change, body))
            paths.append(requested[path])

        return "\n".join(sections), paths

    async def _file_body(self, backend: VcsBackend, ctx: RepositoryContext, change: FileChange) -> str:
        status = change.effective_status
        if status == FileStatus.NEW:
            return await backend.new_file_diff(ctx, change.path)
        if status == FileStatus.ADDED:
            return await backend.added_file_diff(ctx, change.path)
        if status == FileStatus.RENAMED and change.rename_info is not None:
            return await backend.renamed_file_diff(ctx, change.rename_info)
        if status == FileStatus.DELETED:
            return await backend.deleted_file_diff(ctx, change.path)
        return await backend.modified_file_diff(ctx, change.path)
