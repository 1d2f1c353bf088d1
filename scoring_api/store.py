# scoring_api/store.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, List, Optional

from loguru import logger
from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, func, select, update, delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from scoring_api.errors import ConflictError, NotFoundError, PersistenceError
from scoring_api.models import Match

Base = declarative_base()


class MatchRecord(Base):
    """One row per match; the full aggregate lives in `document`."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, index=True)
    match_date = Column(DateTime(timezone=True), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=0)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<MatchRecord({self.match_id}, {self.status}, v{self.version})>"


class Database:
    """Explicit connection lifecycle for the match store."""

    def __init__(self, url: str):
        self.url = url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def connect(self) -> None:
        """Create the engine, session factory and tables. Safe to call twice."""
        if self._engine is not None:
            return

        kwargs = {"pool_pre_ping": True, "echo": False}
        if self.url.startswith("sqlite"):
            # Store calls run on the threadpool, so connections cross threads
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url in {"sqlite://", "sqlite+pysqlite://"}:
                kwargs["poolclass"] = StaticPool

        try:
            engine = create_engine(self.url, **kwargs)
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            logger.error(f"Match store connection failed: {e}")
            raise PersistenceError(f"Match store unavailable: {e}") from e

        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info(f"Match store connected ({engine.url.render_as_string(hide_password=True)})")

    def is_ready(self) -> bool:
        if self._engine is None:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            return False

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session with commit on success, rollback on error."""
        if self._session_factory is None:
            raise PersistenceError("Match store is not connected")
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class MatchRepository:
    """Loads and saves whole Match aggregates. Every write bumps `version`."""

    def __init__(self, db: Database):
        self.db = db

    def get(self, match_id: str) -> Match:
        try:
            with self.db.session() as s:
                row = s.execute(select(MatchRecord).where(MatchRecord.match_id == match_id)).scalar_one_or_none()
                if row is None:
                    raise NotFoundError("Match not found")
                return self._to_match(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load match {match_id}: {e}") from e

    def list_all(self, status: Optional[str] = None) -> List[Match]:
        query = select(MatchRecord)
        if status is not None:
            query = query.where(MatchRecord.status == status)
        query = query.order_by(MatchRecord.match_date.desc(), MatchRecord.id.desc())
        try:
            with self.db.session() as s:
                return [self._to_match(r) for r in s.execute(query).scalars()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list matches: {e}") from e

    def add(self, match: Match) -> Match:
        match.version = 1
        record = MatchRecord(
            match_id=match.match_id,
            status=match.status,
            match_date=match.match_date,
            version=match.version,
            document=match.to_dict(),
        )
        try:
            with self.db.session() as s:
                s.add(record)
        except IntegrityError as e:
            raise ConflictError(f"Match {match.match_id} already exists") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create match {match.match_id}: {e}") from e
        return match

    def save(self, match: Match) -> Match:
        """
        Writes the aggregate if nobody else wrote it since it was loaded.

        Raises ConflictError on a stale version and leaves `match.version` unchanged.
        """
        expected = match.version
        new_version = expected + 1
        doc = match.to_dict()
        doc["version"] = new_version
        stmt = (
            update(MatchRecord)
            .where(MatchRecord.match_id == match.match_id, MatchRecord.version == expected)
            .values(status=match.status, match_date=match.match_date, version=new_version, document=doc)
        )
        try:
            with self.db.session() as s:
                res = s.execute(stmt)
                if res.rowcount == 0:
                    exists = s.execute(
                        select(MatchRecord.id).where(MatchRecord.match_id == match.match_id)
                    ).scalar_one_or_none()
                    if exists is None:
                        raise NotFoundError("Match not found")
                    logger.warning(f"Stale write rejected for match {match.match_id} (version {expected})")
                    raise ConflictError("Match was modified concurrently, reload and resubmit")
        except SQLAlchemyError as e:
            logger.error(f"Failed to save match {match.match_id}: {e}")
            raise PersistenceError(f"Failed to save match {match.match_id}: {e}") from e

        match.version = new_version
        return match

    def delete(self, match_id: str) -> None:
        try:
            with self.db.session() as s:
                res = s.execute(delete(MatchRecord).where(MatchRecord.match_id == match_id))
                if res.rowcount == 0:
                    raise NotFoundError("Match not found")
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete match {match_id}: {e}") from e

    @staticmethod
    def _to_match(row: MatchRecord) -> Match:
        match = Match.from_dict(row.document)
        match.version = row.version
        return match
