from __future__ import annotations

import enum
import logging
from types import TracebackType

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_sync.errors import TransactionFault

logger = logging.getLogger("attendance_sync.transactions")


class TransactionState(str, enum.Enum):
    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


class InvalidTransactionState(RuntimeError):
    pass


class BatchTransaction:
    """One begin/commit/rollback scope around a batch write.

    State only moves IDLE -> ACTIVE -> COMMITTED | ROLLED_BACK. Rollback is
    attempted from ACTIVE only, so a fault raised after a successful commit
    leaves the batch reported as committed instead of racing a rollback.

    Used as a context manager: a clean exit commits, an exception rolls back.
    SQLAlchemy errors escaping the scope are re-raised as TransactionFault.
    """

    def __init__(self, db: Session, *, operation: str) -> None:
        self._db = db
        self.operation = operation
        self.state = TransactionState.IDLE

    @property
    def committed(self) -> bool:
        return self.state == TransactionState.COMMITTED

    def begin(self) -> None:
        if self.state != TransactionState.IDLE:
            raise InvalidTransactionState(f"cannot begin from {self.state.value}")
        if not self._db.in_transaction():
            self._db.begin()
        self.state = TransactionState.ACTIVE

    def commit(self) -> None:
        if self.state != TransactionState.ACTIVE:
            raise InvalidTransactionState(f"cannot commit from {self.state.value}")
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self.rollback()
            raise TransactionFault(self.operation, str(exc)) from exc
        self.state = TransactionState.COMMITTED

    def rollback(self) -> bool:
        if self.state != TransactionState.ACTIVE:
            return False
        try:
            self._db.rollback()
        finally:
            self.state = TransactionState.ROLLED_BACK
        logger.warning(
            "batch_transaction_rolled_back",
            extra={"operation": self.operation},
        )
        return True

    def __enter__(self) -> BatchTransaction:
        self.begin()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            if self.state == TransactionState.ACTIVE:
                self.commit()
            return False

        self.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.error(
                "batch_transaction_fault",
                extra={"operation": self.operation, "error": str(exc)[:500]},
            )
            raise TransactionFault(self.operation, str(exc)) from exc
        return False
