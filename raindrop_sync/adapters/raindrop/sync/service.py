"""Public Raindrop sync service: the entry point of one import run."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from raindrop_sync.adapters.raindrop.client import RaindropClient, RequestThrottle
from raindrop_sync.adapters.raindrop.errors import (
    CollectionNotFoundError,
    RaindropClientError,
    SyncValidationError,
)
from raindrop_sync.adapters.raindrop.models import ImportQuery, SyncResult
from raindrop_sync.adapters.raindrop.sync.constants import (
    ALL_COLLECTIONS_ID,
    MAX_RETRIES,
    RATE_LIMIT_REQUESTS_PER_MINUTE,
    RETRY_BASE_DELAY_SECONDS,
)
from raindrop_sync.adapters.raindrop.sync.context import SyncRunContext
from raindrop_sync.adapters.raindrop.sync.folders import FolderResolver
from raindrop_sync.adapters.raindrop.sync.importer import PaginatedImportRunner
from raindrop_sync.adapters.raindrop.sync.progress import ProgressChannel
from raindrop_sync.config.integrations import DEFAULT_API_URL
from raindrop_sync.core.logging_utils import generate_correlation_id

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.models import CollectionRecord, SyncSettings
    from raindrop_sync.adapters.raindrop.sync.protocols import (
        BookmarkStore,
        ProgressSink,
        RaindropClientFactory,
        RaindropClientProtocol,
    )
    from raindrop_sync.config import RaindropConfig

logger = logging.getLogger(__name__)

VALID_MODES = ("tag", "collection", "all")


class SyncRunState(str, Enum):
    VALIDATING_INPUT = "validating_input"
    FETCHING_DIRECTORY = "fetching_directory"
    PREPARING_TARGET_FOLDER = "preparing_target_folder"
    PREFLIGHT_COUNTING = "preflight_counting"
    IMPORTING = "importing"
    DONE = "done"
    FAILED = "failed"


def tag_search_expression(tag: str) -> str:
    """Build the Raindrop search for one tag: ``"#name"``.

    The ``#`` is only added when the configured value lacks it; quoting keeps
    tags with spaces in one term.
    """
    name = tag.strip()
    if not name.startswith("#"):
        name = f"#{name}"
    return f'"{name}"'


def _remote_query(query: ImportQuery) -> tuple[str, str | None]:
    """Map a tag or ``all`` query onto the collection id and search it runs against."""
    if query.mode == "tag":
        return ALL_COLLECTIONS_ID, tag_search_expression(query.value or "")
    return ALL_COLLECTIONS_ID, None


class RaindropSyncService:
    """Imports Raindrop bookmarks into a local folder, rebuilding it on every run.

    Every run starts from an empty target folder: its previous contents are
    removed before importing. ``import_all`` never raises; failures come back
    as ``SyncResult(success=False)``. Callers must not start two runs at the
    same time on one store.
    """

    def __init__(
        self,
        store: BookmarkStore,
        *,
        api_url: str = DEFAULT_API_URL,
        client_factory: RaindropClientFactory | None = None,
        throttle: RequestThrottle | None = None,
        progress_listener: ProgressSink | None = None,
        requests_per_minute: int = RATE_LIMIT_REQUESTS_PER_MINUTE,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        request_timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.request_timeout = request_timeout
        self._store = store
        self._throttle = throttle or RequestThrottle.for_rate(requests_per_minute)
        self._client_factory = client_factory or self._default_client_factory
        self._progress = ProgressChannel(progress_listener)
        self._resolver = FolderResolver(store)
        self._runner = PaginatedImportRunner(
            store=store, resolver=self._resolver, progress=self._progress
        )

    @classmethod
    def from_config(
        cls, cfg: RaindropConfig, store: BookmarkStore, **kwargs: Any
    ) -> RaindropSyncService:
        return cls(
            store,
            api_url=cfg.api_url,
            requests_per_minute=cfg.requests_per_minute,
            max_retries=cfg.max_retries,
            retry_base_delay=cfg.retry_base_delay,
            request_timeout=cfg.request_timeout,
            **kwargs,
        )

    def _default_client_factory(self, api_url: str, api_token: str) -> RaindropClient:
        return RaindropClient(
            api_url,
            api_token,
            timeout=self.request_timeout,
            throttle=self._throttle,
            max_retries=self.max_retries,
            retry_base_delay=self.retry_base_delay,
            jitter=0.1,
        )

    def _enter(self, context: SyncRunContext, state: SyncRunState) -> None:
        logger.debug(
            "raindrop_sync_state",
            extra={"correlation_id": context.correlation_id, "state": state.value},
        )

    @staticmethod
    def _validate(settings: SyncSettings) -> None:
        missing = []
        if not settings.token:
            missing.append("API token")
        if not settings.target_folder_name:
            missing.append("target folder")
        if settings.mode not in VALID_MODES:
            raise SyncValidationError(
                f"Invalid import mode: {settings.mode or '(empty)'}. "
                f"Must be one of {', '.join(VALID_MODES)}"
            )
        if settings.mode != "all" and not settings.config_values:
            missing.append("tag or collection name")
        if missing:
            raise SyncValidationError(f"Missing required settings: {', '.join(missing)}")

    async def import_all(self, settings: SyncSettings) -> SyncResult:
        start_time = time.time()
        context = SyncRunContext(correlation_id=generate_correlation_id())

        self._enter(context, SyncRunState.VALIDATING_INPUT)
        try:
            self._validate(settings)
        except SyncValidationError as exc:
            logger.warning(
                "raindrop_sync_invalid_settings",
                extra={"correlation_id": context.correlation_id, "error": str(exc)},
            )
            return SyncResult(
                success=False, error_message=str(exc), correlation_id=context.correlation_id
            )

        logger.info(
            "raindrop_sync_start",
            extra={
                "correlation_id": context.correlation_id,
                "mode": settings.mode,
                "values": settings.config_values,
                "target_folder": settings.target_folder_name,
                "flatten": settings.flatten,
            },
        )

        not_found: list[str] = []
        try:
            async with self._client_factory(self.api_url, settings.token) as client:
                imported = await self._run(client, context, settings, not_found)
        except Exception as exc:
            self._enter(context, SyncRunState.FAILED)
            context.clear()
            duration = time.time() - start_time
            if isinstance(exc, (RaindropClientError, CollectionNotFoundError)):
                logger.error(
                    "raindrop_sync_failed",
                    extra={
                        "correlation_id": context.correlation_id,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration": duration,
                    },
                )
            else:
                logger.exception(
                    "raindrop_sync_unexpected_error",
                    extra={"correlation_id": context.correlation_id},
                )
            return SyncResult(
                success=False,
                error_message=str(exc),
                not_found=not_found,
                correlation_id=context.correlation_id,
                duration_seconds=duration,
            )

        self._enter(context, SyncRunState.DONE)
        self._progress.complete(context.progress)
        context.clear()

        result = SyncResult(
            success=True,
            imported_count=imported,
            target_folder_name=settings.target_folder_name,
            not_found=not_found,
            correlation_id=context.correlation_id,
            duration_seconds=time.time() - start_time,
        )
        logger.info(
            "raindrop_sync_complete",
            extra={
                "correlation_id": context.correlation_id,
                "imported": result.imported_count,
                "not_found": not_found,
                "duration": result.duration_seconds,
            },
        )
        return result

    async def _run(
        self,
        client: RaindropClientProtocol,
        context: SyncRunContext,
        settings: SyncSettings,
        not_found: list[str],
    ) -> int:
        self._enter(context, SyncRunState.FETCHING_DIRECTORY)
        await context.directory.refresh(client, correlation_id=context.correlation_id)

        self._enter(context, SyncRunState.PREPARING_TARGET_FOLDER)
        target_root_id = await self._resolver.prepare_target_root(
            settings.target_folder_name, correlation_id=context.correlation_id
        )
        context.reset_caches()

        queries = settings.queries()
        resolved: list[tuple[str, str]] = []
        if settings.mode == "collection":
            for query in queries:
                name = query.value or ""
                collection_id = context.directory.lookup_by_title(name)
                if collection_id is None:
                    not_found.append(name)
                else:
                    resolved.append((name, collection_id))
            if not_found:
                logger.warning(
                    "raindrop_collections_not_found",
                    extra={"correlation_id": context.correlation_id, "names": not_found},
                )

        self._enter(context, SyncRunState.PREFLIGHT_COUNTING)
        context.progress.total = await self._preflight_total(client, context, queries, resolved)

        self._enter(context, SyncRunState.IMPORTING)
        if settings.mode == "collection":
            imported = await self._import_collections(
                client,
                context,
                resolved,
                target_root_id=target_root_id,
                flatten=settings.flatten,
                wrap_in_subfolders=len(queries) > 1,
            )
            if not resolved:
                raise CollectionNotFoundError(not_found)
            return imported

        imported = 0
        for query in queries:
            collection_id, search = _remote_query(query)
            imported += await self._runner.run(
                client,
                context,
                collection_id=collection_id,
                search=search,
                target_root_id=target_root_id,
                flatten=settings.flatten,
            )
        return imported

    async def _import_collections(
        self,
        client: RaindropClientProtocol,
        context: SyncRunContext,
        resolved: list[tuple[str, str]],
        *,
        target_root_id: str,
        flatten: bool,
        wrap_in_subfolders: bool,
    ) -> int:
        imported = 0
        handled: set[str] = set()

        for name, root_collection_id in resolved:
            root_folder_id = target_root_id
            if wrap_in_subfolders:
                record = context.directory.get(root_collection_id)
                title = record.title if record else name
                root_folder_id = await self._resolver.ensure_subfolder(target_root_id, title)

            collection_ids = [
                root_collection_id,
                *context.directory.descendants_of(root_collection_id),
            ]
            for collection_id in collection_ids:
                if collection_id in handled:
                    continue
                handled.add(collection_id)
                # The searched-for collection maps onto the root folder itself.
                imported += await self._runner.run(
                    client,
                    context,
                    collection_id=collection_id,
                    target_root_id=root_folder_id,
                    imported_root_id=root_collection_id,
                    flatten=flatten,
                )
        return imported

    async def _preflight_total(
        self,
        client: RaindropClientProtocol,
        context: SyncRunContext,
        queries: list[ImportQuery],
        resolved: list[tuple[str, str]],
    ) -> int:
        """Best-effort expected item count; failed counts contribute zero."""
        counts: list[tuple[str, str | None, bool]]
        if any(query.mode == "collection" for query in queries):
            counts = [(collection_id, None, True) for _, collection_id in resolved]
        else:
            counts = [(*_remote_query(query), False) for query in queries]

        total = 0
        for collection_id, search, nested in counts:
            try:
                total += await client.count_raindrops(collection_id, search=search, nested=nested)
            except (RaindropClientError, ValueError) as exc:
                logger.warning(
                    "raindrop_preflight_count_failed",
                    extra={
                        "correlation_id": context.correlation_id,
                        "collection_id": collection_id,
                        "search": search,
                        "error": str(exc),
                    },
                )
        logger.info(
            "raindrop_preflight_total",
            extra={"correlation_id": context.correlation_id, "total": total},
        )
        return total

    async def list_collections(self, token: str) -> list[CollectionRecord]:
        """Fetch the collection tree, e.g. to check names before configuring a sync."""
        if not token:
            raise SyncValidationError("Missing required settings: API token")
        context = SyncRunContext(correlation_id=generate_correlation_id())
        async with self._client_factory(self.api_url, token) as client:
            await context.directory.refresh(client, correlation_id=context.correlation_id)
        return list(context.directory)
