"""
PatchSync Server - Database Manager

This module manages the database connection, initialization, and the
username to public key registry.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, exc
from sqlalchemy.orm import sessionmaker

from patchsync.server.models.database import Base, User

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Manages database connection, initialization, and user registry operations
    """

    def __init__(self, db_path: str = "database/patchsync.db"):
        """
        Initialize database manager

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

        # Ensure database directory exists
        db_dir = Path(db_path).parent
        if db_dir and str(db_dir) != '.':
            db_dir.mkdir(parents=True, exist_ok=True)

        # Request handlers run in a thread pool, so connections cross threads
        self.engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,
            connect_args={"check_same_thread": False}
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def InitializeDatabase(self) -> None:
        """Create all tables if they don't exist"""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database ready: {self.db_path}")

    def GetSession(self):
        """
        Get a new database session

        Returns:
            Session: SQLAlchemy session (caller must close it)
        """
        return self.SessionLocal()

    def Dispose(self) -> None:
        self.engine.dispose()

    # ==================== User Registry ====================

    def GetUserPublicKey(self, username: str) -> Optional[str]:
        """
        Get the public key registered for a username

        Returns:
            str: Public key string, or None if the username is not registered
        """
        session = self.GetSession()
        try:
            user = self._FindUser(session, username)
            return user.public_key if user else None
        finally:
            session.close()

    def _FindUser(self, session, username: str) -> Optional[User]:
        return session.query(User).filter(User.username == username).first()

    def _CheckExistingUser(self, session, user: User, public_key: str) -> bool:
        if user.public_key != public_key:
            raise ValueError(f"Username '{user.username}' is registered with a different key")
        user.last_seen = datetime.now(timezone.utc)
        session.commit()
        return False

    def RegisterUser(self, username: str, public_key: str) -> bool:
        """
        Register a username with a public key

        Two first registrations of one name can race; the loser's insert hits
        the unique constraint and is then judged like any existing user.

        Args:
            username: Username to register
            public_key: Public key string of the registering identity

        Returns:
            bool: True if a new user was created, False if it already existed with the same key

        Raises:
            ValueError: If the username is registered with a different key
        """
        session = self.GetSession()
        try:
            user = self._FindUser(session, username)
            if user is not None:
                return self._CheckExistingUser(session, user, public_key)

            session.add(User(username=username, public_key=public_key))
            try:
                session.commit()
            except exc.IntegrityError:
                session.rollback()
                user = self._FindUser(session, username)
                if user is None:
                    raise
                logger.info(f"User '{username}' was registered concurrently")
                return self._CheckExistingUser(session, user, public_key)

            logger.info(f"Registered user '{username}'")
            return True

        except ValueError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to register user '{username}': {str(e)}")
            raise
        finally:
            session.close()

    def TouchUser(self, username: str) -> None:
        """Record that a user was just seen"""
        session = self.GetSession()
        try:
            user = self._FindUser(session, username)
            if user is not None:
                user.last_seen = datetime.now(timezone.utc)
                session.commit()
        finally:
            session.close()
