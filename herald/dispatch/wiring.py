"""Per-invocation construction of the execution engine.

Every worker invocation builds its own SQLAlchemy engine, research model and
delivery channel and disposes of them before returning. Nothing is cached at
module level, so invocations never share connections or HTTP clients.

Usage
-----
>>> async with worker_scope(database_url, retry_scheduler=scheduler) as engine:
...     await engine.dispatcher.dispatch("r1", "2024-06-01")

"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import typing as typ

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from herald.common.storage import init_storage
from herald.definitions.service import ReportDefinitionService
from herald.delivery.coordinator import DeliveryCoordinator
from herald.delivery.factory import create_delivery_channel
from herald.dispatch.dispatcher import TriggerDispatcher
from herald.execution.config import EngineConfig
from herald.execution.machine import ExecutionStateMachine
from herald.execution.observability import ExecutionEventLogger
from herald.execution.store import ExecutionStore
from herald.research.factory import create_research_model
from herald.research.orchestrator import ResearchOrchestrator
from herald.schedule.registry import DatabaseScheduleRegistry

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.delivery.protocol import DeliveryChannel
    from herald.execution.retry import RetryScheduler
    from herald.research.protocol import ResearchModel

type SessionFactory = async_sessionmaker[AsyncSession]


@dc.dataclass(frozen=True, slots=True)
class EngineComponents:
    """The wired collaborators of one invocation."""

    session_factory: SessionFactory
    registry: DatabaseScheduleRegistry
    definitions: ReportDefinitionService
    store: ExecutionStore
    machine: ExecutionStateMachine
    dispatcher: TriggerDispatcher


@dc.dataclass(frozen=True, slots=True)
class EngineDependencies:
    """External adapters the engine is built around."""

    retry_scheduler: RetryScheduler
    research_model: ResearchModel
    delivery_channel: DeliveryChannel


def build_components(
    session_factory: SessionFactory,
    dependencies: EngineDependencies,
    *,
    config: EngineConfig,
) -> EngineComponents:
    """Assemble the engine around ``session_factory`` and ``dependencies``."""
    registry = DatabaseScheduleRegistry(session_factory)
    definitions = ReportDefinitionService(session_factory, registry)
    store = ExecutionStore(session_factory)
    event_logger = ExecutionEventLogger()
    machine = ExecutionStateMachine(
        store=store,
        orchestrator=ResearchOrchestrator(
            dependencies.research_model, timeout_s=config.research_timeout_s
        ),
        coordinator=DeliveryCoordinator(
            dependencies.delivery_channel, timeout_s=config.delivery_timeout_s
        ),
        retry_scheduler=dependencies.retry_scheduler,
        deactivator=definitions,
        config=config,
        event_logger=event_logger,
    )
    dispatcher = TriggerDispatcher(definitions, machine, event_logger=event_logger)
    return EngineComponents(
        session_factory=session_factory,
        registry=registry,
        definitions=definitions,
        store=store,
        machine=machine,
        dispatcher=dispatcher,
    )


@contextlib.asynccontextmanager
async def session_scope(database_url: str) -> cabc.AsyncIterator[SessionFactory]:
    """Yield a session factory on a fresh engine, disposing it afterwards."""
    engine = create_async_engine(database_url)
    try:
        await init_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@contextlib.asynccontextmanager
async def worker_scope(
    database_url: str,
    *,
    retry_scheduler: RetryScheduler,
    research_model: ResearchModel | None = None,
    delivery_channel: DeliveryChannel | None = None,
    config: EngineConfig | None = None,
) -> cabc.AsyncIterator[EngineComponents]:
    """Yield a fully wired engine for one invocation.

    Research models and delivery channels not supplied by the caller are
    created from the environment and closed when the scope exits.

    Raises
    ------
    EngineConfigError, ResearchModelConfigError, DeliveryConfigError
        If the environment does not describe a usable engine.

    """
    engine_config = config or EngineConfig.from_env()
    owned_model = research_model is None
    owned_channel = delivery_channel is None
    model = research_model or create_research_model()
    try:
        channel = delivery_channel or create_delivery_channel()
    except Exception:
        if owned_model:
            await model.aclose()
        raise

    try:
        async with session_scope(database_url) as session_factory:
            yield build_components(
                session_factory,
                EngineDependencies(
                    retry_scheduler=retry_scheduler,
                    research_model=model,
                    delivery_channel=channel,
                ),
                config=engine_config,
            )
    finally:
        if owned_channel:
            await channel.aclose()
        if owned_model:
            await model.aclose()
