"""Application factory for the Herald Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with execution endpoints::

    deps = AppDependencies(
        session_factory=session_factory,
        resend_enqueuer=DramatiqResendEnqueuer(database_url),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from herald.api.errors import register_error_handlers
from herald.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from herald.api.executions.resources import ResendEnqueuer

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    session_factory
        Async session factory; enables the execution query endpoints.
    resend_enqueuer
        Queue for delivery resends; enables the resend endpoint when a
        session factory is also present.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    resend_enqueuer: ResendEnqueuer | None = None


def create_app(dependencies: AppDependencies | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered. A session factory adds
    ``RequestSessionMiddleware`` and the execution query routes; a resend
    enqueuer additionally adds the resend route.
    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = []
    if deps.session_factory is not None:
        from herald.api.middleware import RequestSessionMiddleware

        middleware.append(RequestSessionMiddleware(deps.session_factory))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())

    if deps.session_factory is not None:
        from herald.api.executions.resources import (
            ExecutionCollectionResource,
            ExecutionResendResource,
            ExecutionResource,
        )

        app.add_route("/reports/{report_id}/executions", ExecutionCollectionResource())
        app.add_route(
            "/reports/{report_id}/executions/{period_key}", ExecutionResource()
        )
        if deps.resend_enqueuer is not None:
            app.add_route(
                "/reports/{report_id}/executions/{period_key}/resend",
                ExecutionResendResource(deps.resend_enqueuer),
            )

    register_error_handlers(app)

    return app
