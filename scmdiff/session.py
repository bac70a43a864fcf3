"""Session-scoped entry point.

Contains:
- ScmSession: Owns settings, the command executor, resolver, detector and
  one provider per backend family
- ScmClient: The per-backend interface handed to callers
"""

from typing import Mapping, Optional, Sequence

from scmdiff.backends import BACKENDS, VcsBackend
from scmdiff.config import ScmSettings
from scmdiff.diff import DiffAssembler
from scmdiff.exceptions import RepositoryNotFoundError
from scmdiff.host import Clipboard, EditorState, HostScmApi, LoggingNotifier, Notifier
from scmdiff.logging_config import get_logger
from scmdiff.models import (
    DiffRequest,
    DiffResult,
    DiffTarget,
    FileChange,
    RecentCommitMessages,
    RegisteredRepository,
    RepositoryContext,
    StagedDetails,
    StagedDetectionResult,
    TargetValidation,
    VcsType,
)
from scmdiff.providers import ProviderDeps, ScmProvider, create_provider
from scmdiff.repository import RepositoryResolver, discover_repositories
from scmdiff.runner import AuthConfirm, CommandExecutor
from scmdiff.staged import StagedContentDetector, explain_target_selection, validate_target
from scmdiff.status import StatusClassifier

logger = get_logger(__name__)


class ScmSession:
    """Everything needed to serve requests for one workspace.

    Providers are created lazily, once per backend family, and cached for
    the lifetime of the session.
    """

    def __init__(
        self,
        settings: Optional[ScmSettings] = None,
        *,
        registry: Optional[Sequence[RegisteredRepository]] = None,
        editor: Optional[EditorState] = None,
        clipboard: Optional[Clipboard] = None,
        notifier: Optional[Notifier] = None,
        host_apis: Optional[Mapping[VcsType, HostScmApi]] = None,
        executor: Optional[CommandExecutor] = None,
        auth_confirm: Optional[AuthConfirm] = None,
        strategies: Optional[Sequence[type[ScmProvider]]] = None,
        windows: Optional[bool] = None,
    ):
        self.settings = settings or ScmSettings()
        self.executor = executor or CommandExecutor(
            self.settings, auth_confirm=auth_confirm, windows=windows
        )
        self.notifier = notifier or LoggingNotifier(enabled=self.settings.show_notifications)
        self.clipboard = clipboard
        self.editor = editor
        self.host_apis = dict(host_apis or {})
        self.strategies = strategies

        self.backends: dict[VcsType, VcsBackend] = {
            vcs_type: backend_cls(self.executor) for vcs_type, backend_cls in BACKENDS.items()
        }
        self.classifier = StatusClassifier(self.backends)
        self.assembler = DiffAssembler(
            self.backends, self.classifier, self.settings, self.notifier, windows=windows
        )
        self.detector = StagedContentDetector(self.backends, self.settings)
        self.resolver = RepositoryResolver(registry, editor=editor, windows=windows)
        self._providers: dict[VcsType, ScmProvider] = {}

    def register(self, root_path: str, vcs_type: VcsType) -> RegisteredRepository:
        """Register a repository root."""
        return self.resolver.register(root_path, vcs_type)

    async def discover(self, folders: Optional[Sequence[str]] = None) -> list[RegisteredRepository]:
        """Discover and register repositories under ``folders``.

        Defaults to the editor's workspace folders.
        """
        if folders is None:
            folders = list(self.editor.workspace_folders) if self.editor else []
        found = await discover_repositories(folders, self.backends[VcsType.DISTRIBUTED])
        for repo in found:
            self.resolver.register(repo.root_path, repo.vcs_type)
        return found

    async def provider(self, vcs_type: VcsType) -> ScmProvider:
        """The session's provider for ``vcs_type``, created on first use."""
        provider = self._providers.get(vcs_type)
        if provider is None:
            deps = ProviderDeps(
                settings=self.settings,
                executor=self.executor,
                backend=self.backends[vcs_type],
                assembler=self.assembler,
                clipboard=self.clipboard,
                notifier=self.notifier,
                host_api=self.host_apis.get(vcs_type),
            )
            provider = await create_provider(vcs_type, deps, self.strategies)
            self._providers[vcs_type] = provider
        return provider

    def resolve(
        self,
        files: Optional[Sequence[str]] = None,
        explicit_path: Optional[str] = None,
        vcs_type: Optional[VcsType] = None,
    ) -> RepositoryContext:
        """Resolve a repository or raise RepositoryNotFoundError."""
        ctx = self.resolver.resolve(files, explicit_path, vcs_type)
        if ctx is None:
            raise RepositoryNotFoundError(
                "No repository found for this request",
                scm_type=vcs_type.value if vcs_type else None,
                operation="resolve",
                details={"explicit_path": explicit_path} if explicit_path else None,
            )
        return ctx

    async def get_diff(self, request: DiffRequest, vcs_type: Optional[VcsType] = None) -> DiffResult:
        """Resolve the repository and target, then assemble the diff."""
        ctx = self.resolve(request.files, request.explicit_repository_path, vcs_type)
        provider = await self.provider(ctx.vcs_type)

        if request.files:
            target = request.target if request.target != DiffTarget.AUTO else DiffTarget.ALL
        else:
            detection = await self.detector.detect(ctx)
            target, reason = explain_target_selection(detection, self.settings, request.target)
            logger.info("Diff target for %s: %s (%s)", ctx.root_path, target.value, reason)
            if self.settings.show_notifications:
                self.notifier.info("diff.target.selected", target=target.value, reason=reason)

        return await provider.get_diff(ctx, files=request.files, target=target)

    async def detect_staged(
        self, explicit_path: Optional[str] = None, use_cache: bool = True
    ) -> StagedDetectionResult:
        ctx = self.resolve(explicit_path=explicit_path)
        return await self.detector.detect(ctx, use_cache=use_cache)

    async def staged_details(self, explicit_path: Optional[str] = None) -> StagedDetails:
        ctx = self.resolve(explicit_path=explicit_path)
        return await self.detector.get_staged_details(ctx)

    async def validate_target(
        self, target: DiffTarget, explicit_path: Optional[str] = None
    ) -> TargetValidation:
        ctx = self.resolve(explicit_path=explicit_path)
        return await validate_target(await self.provider(ctx.vcs_type), ctx, target)

    async def classify(self, file: str) -> FileChange:
        """Classify one file in the repository that owns it."""
        ctx = self.resolve(files=[file])
        return await self.classifier.classify(file, ctx)

    def client(self, vcs_type: VcsType) -> "ScmClient":
        return ScmClient(self, vcs_type)


class ScmClient:
    """Per-backend interface; every call resolves its repository afresh."""

    def __init__(self, session: ScmSession, vcs_type: VcsType):
        self.session = session
        self.vcs_type = vcs_type

    async def is_available(self) -> bool:
        """A repository of this family is registered and its executable responds."""
        if self.session.resolver.resolve(vcs_type=self.vcs_type) is None:
            return False
        if self.vcs_type in self.session._providers:
            return True
        backend = self.session.backends[self.vcs_type]
        return await self.session.executor.is_available(backend.executable)

    async def init(self) -> None:
        await self.session.provider(self.vcs_type)

    async def _bind(
        self, files: Optional[Sequence[str]] = None, explicit_path: Optional[str] = None
    ) -> tuple[RepositoryContext, ScmProvider]:
        ctx = self.session.resolve(files, explicit_path, self.vcs_type)
        return ctx, await self.session.provider(self.vcs_type)

    async def get_diff(
        self,
        files: Optional[Sequence[str]] = None,
        target: Optional[DiffTarget] = None,
        explicit_path: Optional[str] = None,
    ) -> DiffResult:
        request = DiffRequest(
            files=tuple(files) if files else None,
            target=target or DiffTarget.AUTO,
            explicit_repository_path=explicit_path,
        )
        return await self.session.get_diff(request, vcs_type=self.vcs_type)

    async def commit(
        self,
        message: str,
        files: Optional[Sequence[str]] = None,
        explicit_path: Optional[str] = None,
    ) -> None:
        ctx, provider = await self._bind(files, explicit_path)
        await provider.commit(ctx, message, files)
        self.session.detector.invalidate(ctx.root_path)

    async def set_commit_input(self, message: str, explicit_path: Optional[str] = None) -> None:
        ctx, provider = await self._bind(explicit_path=explicit_path)
        await provider.set_commit_input(ctx, message)

    async def get_commit_input(self, explicit_path: Optional[str] = None) -> str:
        ctx, provider = await self._bind(explicit_path=explicit_path)
        return await provider.get_commit_input(ctx)

    async def get_commit_log(
        self,
        base: Optional[str] = None,
        head: Optional[str] = None,
        explicit_path: Optional[str] = None,
    ) -> list[str]:
        ctx, provider = await self._bind(explicit_path=explicit_path)
        return await provider.get_commit_log(ctx, base=base, head=head)

    async def get_recent_commit_messages(
        self, explicit_path: Optional[str] = None
    ) -> RecentCommitMessages:
        ctx, provider = await self._bind(explicit_path=explicit_path)
        return await provider.get_recent_commit_messages(ctx)
