"""Base repository class with common functionality."""

from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from ..database import get_session_sync


class BaseRepository:
    """
    Base repository class providing common session management.

    A session passed in belongs to the caller. Otherwise the repository opens
    one (from ``session_factory`` when given) and closes it on exit.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        self._external_session = session is not None
        if session is not None:
            self.session = session
        elif session_factory is not None:
            self.session = session_factory()
        else:
            self.session = get_session_sync()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.session.rollback()
        if not self._external_session:
            self.session.close()
