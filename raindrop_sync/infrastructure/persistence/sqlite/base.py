from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import peewee

if TYPE_CHECKING:
    from raindrop_sync.db.session import DatabaseSessionManager


class SqliteBaseRepository:
    """Base repository for SQLite implementations.

    Subclasses may set ``error_class`` to translate peewee failures into their
    own domain error; by default peewee errors propagate unchanged.
    """

    error_class: ClassVar[type[Exception] | None] = None

    def __init__(self, session_manager: DatabaseSessionManager) -> None:
        self._session = session_manager

    async def _execute(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "repository_operation",
        read_only: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Run ``operation`` in a worker thread through the session manager."""
        try:
            return await self._session._safe_db_operation(
                operation,
                *args,
                timeout=timeout,
                operation_name=operation_name,
                read_only=read_only,
                **kwargs,
            )
        except peewee.PeeweeException as exc:
            if self.error_class is None:
                raise
            msg = f"{operation_name} failed: {exc}"
            raise self.error_class(msg) from exc
