"""Shared plumbing for SQLAlchemy repositories."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from authgate.adapters.persistence.database import get_session_factory, session_scope
from authgate.core.errors import ConflictError, FailurePolicy, StoreUnavailableError

logger = logging.getLogger(__name__)

# A durable-store failure must never be read as "token valid".
TOKEN_STORE_FAILURE_POLICY = FailurePolicy.FAIL_CLOSED


class SqlRepository:
    """Base repository: one short transaction per public method."""

    failure_policy = TOKEN_STORE_FAILURE_POLICY

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[Session]:
        """Open a transaction and surface driver errors as StoreUnavailableError."""
        factory = self._session_factory or get_session_factory()
        try:
            with session_scope(factory) as session:
                yield session
        except IntegrityError as exc:
            # A constraint violation is a caller conflict, not an outage
            logger.warning(
                "db.constraint_violated",
                extra={"repository": type(self).__name__, "operation": operation},
            )
            raise ConflictError(
                code="conflict",
                message="The record conflicts with an existing one",
                details={"store": "database", "operation": operation},
            ) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "db.operation_failed",
                extra={
                    "repository": type(self).__name__,
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "failure_policy": self.failure_policy.value,
                },
            )
            raise StoreUnavailableError(
                message="Durable store unavailable. Please try again later.",
                details={"store": "database", "operation": operation},
            ) from exc
