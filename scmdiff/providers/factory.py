"""Provider selection with fallback."""

from typing import Optional, Sequence

from scmdiff.exceptions import ExecutableNotFoundError, ScmError
from scmdiff.logging_config import get_logger
from scmdiff.models import VcsType
from scmdiff.providers.api import HostApiProvider
from scmdiff.providers.base import ProviderDeps, ScmProvider
from scmdiff.providers.cli import CliProvider
from scmdiff.providers.degraded import DegradedProvider

logger = get_logger(__name__)

DEFAULT_STRATEGIES: tuple[type[ScmProvider], ...] = (
    HostApiProvider,
    CliProvider,
    DegradedProvider,
)


async def create_provider(
    vcs_type: VcsType,
    deps: ProviderDeps,
    strategies: Optional[Sequence[type[ScmProvider]]] = None,
) -> ScmProvider:
    """Return the first available, successfully initialized provider.

    Args:
        vcs_type: Backend family to serve.
        deps: Shared collaborators handed to every strategy.
        strategies: Strategy classes in preference order.

    Returns:
        An initialized provider.

    Raises:
        ExecutableNotFoundError: If every strategy is unavailable or fails.
    """
    tried = []
    for strategy in strategies or DEFAULT_STRATEGIES:
        provider = strategy(vcs_type, deps)
        try:
            if not await provider.is_available():
                logger.debug("%s provider unavailable for %s", provider.name, vcs_type.value)
                tried.append(f"{provider.name}: unavailable")
                continue
            await provider.init()
        except ScmError as e:
            logger.warning("%s provider failed for %s: %s", provider.name, vcs_type.value, e.message)
            tried.append(f"{provider.name}: {e.message}")
            continue

        logger.info("Selected %s provider for %s", provider.name, vcs_type.value)
        return provider

    raise ExecutableNotFoundError(
        f"No usable {vcs_type.value} provider",
        scm_type=vcs_type.value,
        operation="create_provider",
        details={"tried": "; ".join(tried)},
    )
