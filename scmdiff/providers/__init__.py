"""SCM provider strategies.

This package provides the providers tried in order by create_provider:
- api: HostApiProvider (host VCS extension)
- cli: CliProvider (located git/svn executable)
- degraded: DegradedProvider (bare shell commands)
- factory: create_provider
"""

from scmdiff.providers.api import HostApiProvider
from scmdiff.providers.base import ProviderDeps, ScmProvider
from scmdiff.providers.cli import CliProvider, common_locations
from scmdiff.providers.degraded import DegradedProvider
from scmdiff.providers.factory import DEFAULT_STRATEGIES, create_provider

__all__ = [
    "CliProvider",
    "DEFAULT_STRATEGIES",
    "DegradedProvider",
    "HostApiProvider",
    "ProviderDeps",
    "ScmProvider",
    "common_locations",
    "create_provider",
]
