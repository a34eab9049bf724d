"""
Operation-scoped database sessions.

Usage:
    # Single operation - acquires and releases immediately
    async with get_session() as session:
        result = await session.get(SubscriptionEntity, id)

    # Multiple operations in a transaction - share one session
    async with transaction():
        await subscription_repo.debit_credits(subscription_id, amount)
        await ledger_repo.record(entry)
    # Commits together, then releases

    # Best-effort write that must not poison the enclosing transaction
    async with transaction() as session:
        ...
        async with savepoint(session):
            await audit_repo.record(entry)

See also:
    - common/db/context.py: ContextVar plumbing and @readonly
    - common/db/session.py: Engine and request-scoped sessions (get_db)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import ResourceClosedError
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session/connection. Commits on
    success (unless readonly), rolls back on exception. Nested calls join
    the outer transaction instead of opening a second connection.

    Raises:
        Exception: Re-raises any exception after rollback
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is not None:
        yield existing
        return

    session_factory = (
        AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
    )

    start = time.perf_counter()
    async with session_factory() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(
            f"Transaction session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session of an enclosing transaction() block; otherwise
    acquires a new session, commits and releases it immediately.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing:
        # Inside a transaction - reuse session, don't commit (transaction handles it)
        yield existing
    else:
        session_factory = (
            AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
        )

        async with session_factory() as session:
            try:
                yield session
                if not effective_readonly:
                    await session.commit()
            except Exception as e:
                logger.error(f"Operation rollback due to: {e}")
                await session.rollback()
                raise


@asynccontextmanager
async def savepoint(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block inside a SAVEPOINT of the given session.

    On failure only the savepoint is rolled back and the exception
    re-raised; the enclosing transaction stays usable.
    """
    nested = await session.begin_nested()
    try:
        yield session
        try:
            await nested.commit()
        except ResourceClosedError:
            pass
    except Exception:
        try:
            await nested.rollback()
        except ResourceClosedError:
            pass
        raise
