"""Per-request database sessions for the execution API.

Every request handled by the Falcon app gets its own ``AsyncSession`` at
``req.context.session``. Execution resources read through that session
instead of opening their own, so one request maps to one transaction.

The transaction is committed when the request succeeded with a status
below 400 and rolled back otherwise. The session is closed in every case.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from herald.logging import get_logger, log_error

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["RequestSessionMiddleware"]

logger = get_logger(__name__)


def _committable(resp: Response, *, req_succeeded: bool) -> bool:
    return req_succeeded and str(resp.status)[:1] not in {"4", "5"}


class RequestSessionMiddleware:
    """Open a session per request and settle it with the response.

    Parameters
    ----------
    session_factory
        Factory bound to the Herald database engine.

    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the factory used for each request."""
        self._session_factory = session_factory

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Create the request's session.

        The session outlives this hook, so it is not entered as a context
        manager here; :meth:`process_response` closes it.
        """
        req.context.session = self._session_factory()

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        req_succeeded: bool,  # noqa: FBT001 - positional in Falcon's hook signature
    ) -> None:
        """Commit or roll back the request's session, then close it."""
        session: AsyncSession | None = getattr(req.context, "session", None)
        if session is None:
            return

        commit = _committable(resp, req_succeeded=req_succeeded)
        try:
            await self._settle(session, commit=commit)
        finally:
            await session.close()

    async def _settle(self, session: AsyncSession, *, commit: bool) -> None:
        if not session.is_active:
            return
        try:
            await (session.commit() if commit else session.rollback())
        except SQLAlchemyError:
            log_error(
                logger,
                "Could not settle request session (commit=%s)",
                commit,
                exc_info=True,
            )
            if session.is_active:
                await session.rollback()
            raise
