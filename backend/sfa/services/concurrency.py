# Overview: Service-layer operations for concurrency; transaction scope, row locks, deadlines and retry.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import UnitOfWorkTimeout

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ATTEMPTS = 3


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; UnitOfWork.begin() takes the
    database write lock up front instead (BEGIN IMMEDIATE).
    """
    return query.with_for_update()


class UnitOfWork:
    """
    One all-or-nothing transaction against the ledger and sale tables.

    Holds the deadline for the attempt; services call check_deadline()
    between steps so a slow transaction aborts instead of hanging.
    """

    def __init__(self, session, *, deadline: float, timeout: float):
        self.session = session
        self.deadline = deadline
        self.timeout = timeout

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check_deadline(self, stage: str | None = None) -> None:
        if self.expired():
            raise UnitOfWorkTimeout(self.timeout, stage)

    def begin(self) -> None:
        """
        Open the write transaction.

        - SQLite: BEGIN IMMEDIATE takes the writer lock now, so the reads
          that follow cannot be invalidated by another writer. Lock waits
          are bounded by the driver busy timeout.
        - PostgreSQL: lock waits and statements are capped at the time left.
        """
        self.check_deadline("begin")
        if self.dialect == "sqlite":
            self.session.execute(text("BEGIN IMMEDIATE"))
        elif self.dialect == "postgresql":
            budget_ms = max(int(self.remaining() * 1000), 1)
            self.session.execute(text(f"SET LOCAL lock_timeout = {budget_ms}"))
            self.session.execute(text(f"SET LOCAL statement_timeout = {budget_ms}"))


def run_in_unit_of_work(
    session,
    func,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_base: float = 0.05,
):
    """
    Execute func(uow) inside one transaction and commit it.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) while the deadline allows. Any other
    exception rolls the transaction back and propagates unchanged. Running
    out of time or out of attempts is reported as UnitOfWorkTimeout.
    """
    deadline = time.monotonic() + timeout
    for attempt in range(attempts):
        uow = UnitOfWork(session, deadline=deadline, timeout=timeout)
        try:
            uow.begin()
            result = func(uow)
            uow.check_deadline("commit")
            session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if uow.expired():
                log.warning("Unit of work timed out after %.1fs: %s", timeout, exc)
                raise UnitOfWorkTimeout(timeout, "storage") from exc
            if attempt >= attempts - 1:
                log.warning("Unit of work gave up after %d attempts: %s", attempts, exc)
                raise UnitOfWorkTimeout(
                    timeout,
                    "retries",
                    message=f"Storage stayed busy after {attempts} attempts; rolled back",
                ) from exc
            delay = min(backoff_base * (2 ** attempt), max(uow.remaining(), 0))
            log.warning(
                "Retrying unit of work (attempt %d/%d) after %s",
                attempt + 2, attempts, type(exc).__name__,
            )
            time.sleep(delay)
        except BaseException:
            session.rollback()
            raise
