"""Per-file change classification.

Contains:
- classify_git_status: Rules for git porcelain output plus rename probes
- classify_svn_status: Rules for svn status output
- StatusClassifier: Runs the backend probes and applies the rules
"""

from typing import Iterable, Mapping, Optional

from scmdiff.backends import GitBackend, SvnBackend, VcsBackend
from scmdiff.exceptions import CommandFailedError, CommandTimeoutError
from scmdiff.logging_config import get_logger
from scmdiff.models import FileChange, FileStatus, RenameInfo, RepositoryContext, VcsType
from scmdiff.parsing import (
    git_status_from_code,
    parse_git_porcelain,
    parse_svn_status,
    svn_status_from_code,
)
from scmdiff.paths import normalize_path, relative_to

logger = get_logger(__name__)


def _self_rename(path: str) -> RenameInfo:
    return RenameInfo(old_path=path, new_path=path, raw=path)


def classify_git_status(
    path: str, porcelain: str, renames: Iterable[RenameInfo] = ()
) -> FileChange:
    """Classify ``path`` from ``git status --porcelain=v1`` output.

    Args:
        path: Repository-relative path being classified.
        porcelain: Status output limited to ``path``.
        renames: Pairs from the rename probes; a match on either side of a
            pair overrides the porcelain status with Renamed.

    Returns:
        FileChange for ``path``. Empty output yields Unknown.
    """
    entries = parse_git_porcelain(porcelain)
    entry = next(
        (e for e in entries if path in (e.path, e.orig_path)),
        entries[0] if entries else None,
    )

    status = git_status_from_code(entry.code) if entry else FileStatus.UNKNOWN
    rename_info = None
    if entry and entry.orig_path and status == FileStatus.RENAMED:
        rename_info = RenameInfo(
            old_path=entry.orig_path,
            new_path=entry.path,
            raw=f"{entry.orig_path} -> {entry.path}",
        )

    for rename in renames:
        if path in (rename.old_path, rename.new_path):
            status = FileStatus.RENAMED
            rename_info = rename
            break

    if status == FileStatus.RENAMED and rename_info is None:
        rename_info = _self_rename(path)
    return FileChange(path=path, status=status, rename_info=rename_info)


def classify_svn_status(path: str, output: str) -> FileChange:
    """Classify ``path`` from ``svn status`` output.

    A ``> moved from X`` annotation marks the item Renamed with X as the old
    side. Subversion reports no similarity score.
    """
    entries = parse_svn_status(output)
    target = normalize_path(path)
    entry = next(
        (e for e in entries if normalize_path(e.path) == target),
        entries[0] if entries else None,
    )
    if entry is None:
        return FileChange(path=path, status=FileStatus.UNKNOWN)

    status = svn_status_from_code(entry.code)
    rename_info = None
    if entry.moved_from:
        status = FileStatus.RENAMED
        rename_info = RenameInfo(
            old_path=entry.moved_from,
            new_path=entry.path,
            raw=f"{entry.moved_from} -> {entry.path}",
        )
    elif status == FileStatus.RENAMED:
        rename_info = _self_rename(path)
    return FileChange(path=path, status=status, rename_info=rename_info)


class StatusClassifier:
    """Classify files by asking the backend that owns the repository."""

    def __init__(self, backends: Mapping[VcsType, VcsBackend]):
        self.backends = backends

    async def classify(
        self,
        file: str,
        ctx: RepositoryContext,
        rename_map: Optional[Mapping[str, RenameInfo]] = None,
    ) -> FileChange:
        """Classify one file; command failures degrade to Unknown.

        Args:
            file: Absolute or repository-relative path.
            ctx: Repository the file belongs to.
            rename_map: Precomputed rename pairs; probed per call when omitted.
        """
        path = relative_to(file, ctx.root_path)
        backend = self.backends[ctx.vcs_type]

        try:
            if isinstance(backend, GitBackend):
                porcelain = await backend.status_porcelain(ctx, path)
                if rename_map is None:
                    renames = await backend.rename_pairs(ctx, cached=True)
                    renames += await backend.rename_pairs(ctx, cached=False)
                else:
                    renames = list(rename_map.values())
                return classify_git_status(path, porcelain, renames)

            if isinstance(backend, SvnBackend):
                return classify_svn_status(path, await backend.status_text(ctx, path))
        except (CommandFailedError, CommandTimeoutError) as e:
            logger.warning("Status lookup failed for %s: %s", path, e)
            return FileChange(path=path, status=FileStatus.UNKNOWN)

        logger.warning("No status rules for backend %s", type(backend).__name__)
        return FileChange(path=path, status=FileStatus.UNKNOWN)

    async def classify_many(
        self,
        files: Iterable[str],
        ctx: RepositoryContext,
        rename_map: Optional[Mapping[str, RenameInfo]] = None,
    ) -> list[FileChange]:
        """Classify files in order, sharing one rename map."""
        if rename_map is None:
            backend = self.backends[ctx.vcs_type]
            try:
                rename_map = await backend.rename_map(ctx)
            except (CommandFailedError, CommandTimeoutError) as e:
                logger.warning("Rename probe failed in %s: %s", ctx.root_path, e)
                rename_map = {}
        return [await self.classify(f, ctx, rename_map) for f in files]
