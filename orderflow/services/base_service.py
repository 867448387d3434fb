"""Shared service base with robust session lifecycle behavior."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from orderflow.database.db import SessionLocal


class BaseService:
    """Base class for services that operate on a SQLAlchemy session.

    Services composed by another service share its session, so their writes land
    in the caller's transaction and are committed by the caller.
    """

    def __init__(self, db: Session | None = None) -> None:
        self.db = db or SessionLocal()

    def commit(self) -> None:
        """Commit current transaction and rollback on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit when the block exits cleanly, roll back and re-raise otherwise."""
        try:
            yield self.db
        except Exception:
            self.rollback()
            raise
        self.commit()

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        self.close()
