"""Staged-content detection and diff target selection.

Contains:
- StagedContentDetector: Probe a repository for staged changes, with a TTL cache
- select_target / explain_target_selection: Resolve AUTO to STAGED or ALL
- validate_target: Check that a target yields any diff
"""

import asyncio
import time
from typing import Callable, Mapping, Optional

from scmdiff.backends import GitBackend, VcsBackend
from scmdiff.config import ScmSettings
from scmdiff.exceptions import (
    CommandTimeoutError,
    NoChangesError,
    RepositoryNotFoundError,
    ScmError,
)
from scmdiff.logging_config import get_logger
from scmdiff.models import (
    DetectionErrorKind,
    DiffTarget,
    RepositoryContext,
    StagedDetails,
    StagedDetectionResult,
    TargetValidation,
    VcsType,
)
from scmdiff.paths import normalize_path

logger = get_logger(__name__)


def _degraded(ctx: RepositoryContext, kind: DetectionErrorKind, message: str) -> StagedDetectionResult:
    return StagedDetectionResult(
        has_staged_content=False,
        staged_file_count=0,
        staged_files=[],
        recommended_target=DiffTarget.ALL,
        repository_path=ctx.root_path,
        error_message=message,
        error_kind=kind,
    )


class StagedContentDetector:
    """Detect whether a repository has changes queued for the next commit.

    Successful results are cached per repository for ``staged_cache_ttl``
    seconds; a cache hit runs no commands. ``detect`` never raises.
    """

    def __init__(
        self,
        backends: Mapping[VcsType, VcsBackend],
        settings: ScmSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backends = backends
        self.settings = settings
        self.clock = clock
        self._cache: dict[str, tuple[float, StagedDetectionResult]] = {}

    def invalidate(self, repository_path: Optional[str] = None) -> None:
        """Drop the cached result for one repository, or all of them."""
        if repository_path is None:
            self._cache.clear()
        else:
            self._cache.pop(normalize_path(repository_path), None)

    def _cached(self, key: str) -> Optional[StagedDetectionResult]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self.clock() - stored_at >= self.settings.staged_cache_ttl:
            del self._cache[key]
            return None
        return result

    async def _probe(self, backend: VcsBackend, ctx: RepositoryContext) -> StagedDetectionResult:
        await backend.validate(ctx, timeout=self.settings.quick_command_timeout)
        files = await backend.staged_files(ctx)
        has_staged = bool(files)
        return StagedDetectionResult(
            has_staged_content=has_staged,
            staged_file_count=len(files),
            staged_files=files,
            recommended_target=DiffTarget.STAGED if has_staged else DiffTarget.ALL,
            repository_path=ctx.root_path,
        )

    async def detect(
        self,
        ctx: RepositoryContext,
        use_cache: bool = True,
        timeout: Optional[float] = None,
    ) -> StagedDetectionResult:
        """Probe ``ctx`` for staged content.

        Args:
            ctx: Repository to probe.
            use_cache: Return a fresh cached result without running commands.
            timeout: Overall limit in seconds, defaults to detection_timeout.

        Returns:
            The detection result; failures produce a degraded result that
            recommends ALL and carries an error message.
        """
        key = normalize_path(ctx.root_path)
        if use_cache:
            cached = self._cached(key)
            if cached is not None:
                logger.debug("Staged detection cache hit for %s", key)
                return cached

        timeout = timeout if timeout is not None else self.settings.detection_timeout
        backend = self.backends[ctx.vcs_type]

        try:
            result = await asyncio.wait_for(self._probe(backend, ctx), timeout=timeout)
        except (asyncio.TimeoutError, CommandTimeoutError):
            logger.warning("Staged detection timed out for %s", ctx.root_path)
            return _degraded(
                ctx, DetectionErrorKind.TIMEOUT,
                f"Staged content detection timed out after {timeout:g}s",
            )
        except RepositoryNotFoundError as e:
            logger.warning("Staged detection: %s", e.message)
            return _degraded(ctx, DetectionErrorKind.INVALID_REPOSITORY, f"Invalid repository: {e.message}")
        except PermissionError as e:
            logger.warning("Staged detection: permission denied for %s", ctx.root_path)
            return _degraded(ctx, DetectionErrorKind.PERMISSION_DENIED, f"Permission denied: {e}")
        except ScmError as e:
            logger.warning("Staged detection failed for %s: %s", ctx.root_path, e.message)
            return _degraded(ctx, DetectionErrorKind.COMMAND_FAILED, f"Command failed: {e.message}")
        except OSError as e:
            logger.warning("Staged detection failed for %s: %s", ctx.root_path, e)
            return _degraded(ctx, DetectionErrorKind.UNKNOWN, str(e))

        self._cache[key] = (self.clock(), result)
        return result

    async def has_staged_changes(self, ctx: RepositoryContext) -> bool:
        """Shortcut for ``detect(ctx).has_staged_content``."""
        return (await self.detect(ctx)).has_staged_content

    async def get_staged_details(self, ctx: RepositoryContext) -> StagedDetails:
        """Staged files with added and deleted line totals.

        Raises:
            ScmError: If the backend commands fail.
        """
        backend = self.backends[ctx.vcs_type]
        if isinstance(backend, GitBackend):
            files, additions, deletions = await backend.staged_numstat(ctx)
            return StagedDetails(files=files, additions=additions, deletions=deletions)

        files, additions, deletions = [], 0, 0
        for path, section in await backend.staged_changes(ctx):
            files.append(path)
            for line in section.splitlines():
                if line.startswith("+") and not line.startswith("+++"):
                    additions += 1
                elif line.startswith("-") and not line.startswith("---"):
                    deletions += 1
        return StagedDetails(files=files, additions=additions, deletions=deletions)


def explain_target_selection(
    detection: StagedDetectionResult,
    settings: ScmSettings,
    user_preference: Optional[DiffTarget] = None,
) -> tuple[DiffTarget, str]:
    """Resolve the diff target and the reason it was chosen.

    Args:
        detection: Staged-content probe for the repository.
        settings: Session settings (auto_detect_staged, fallback_to_all,
            diff_target).
        user_preference: Per-request preference; defaults to the configured
            diff_target.

    Returns:
        A (target, reason) pair; the target is never AUTO.
    """
    preference = user_preference or settings.diff_target

    if not settings.auto_detect_staged:
        if preference == DiffTarget.AUTO:
            return DiffTarget.ALL, "auto-detection disabled"
        return preference, "auto-detection disabled"

    if preference != DiffTarget.AUTO:
        return preference, "user preference"

    if detection.has_staged_content:
        return DiffTarget.STAGED, f"{detection.staged_file_count} staged file(s)"

    if settings.fallback_to_all:
        return DiffTarget.ALL, "no staged changes"

    if detection.error_message:
        return DiffTarget.STAGED, f"detection failed: {detection.error_message}"

    target = detection.recommended_target
    if target == DiffTarget.AUTO:
        target = DiffTarget.ALL
    return target, "detection recommendation"


def select_target(
    detection: StagedDetectionResult,
    settings: ScmSettings,
    user_preference: Optional[DiffTarget] = None,
) -> DiffTarget:
    """Resolve the diff target for a request; never returns AUTO."""
    return explain_target_selection(detection, settings, user_preference)[0]


async def validate_target(provider, ctx: RepositoryContext, target: DiffTarget) -> TargetValidation:
    """Check that ``target`` produces a diff.

    Args:
        provider: Any object with ``get_diff(ctx, files=None, target=...)``.
        ctx: Repository to check.
        target: STAGED or ALL.

    Returns:
        TargetValidation; an empty STAGED diff suggests ALL.
    """
    try:
        await provider.get_diff(ctx, target=target)
    except NoChangesError:
        if target == DiffTarget.STAGED:
            return TargetValidation(
                is_valid=False,
                reason="No staged changes found",
                suggestion=DiffTarget.ALL,
            )
        return TargetValidation(is_valid=False, reason="No changes detected")
    return TargetValidation(is_valid=True)
