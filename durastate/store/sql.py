"""
SQL Store
=========

Records in a single SQLAlchemy-mapped table. Works against any database
SQLAlchemy supports; SQLite connections run in WAL mode with synchronous
writes so a committed save survives a crash.

Saves are compare-and-swap on the version column, so two writers racing on
one record cannot silently overwrite each other.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy import (
    create_engine,
    event,
    update,
    Column,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from ..errors import ConcurrentModificationError, StorageError
from ..record import WorkflowRecord
from .base import StateStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class RecordRow(Base):
    """One workflow record"""
    __tablename__ = "workflow_records"

    id = Column(String(128), primary_key=True)
    workflow = Column(String(128), nullable=False, default="")
    state = Column(String(128), nullable=False)
    payload = Column(Text)  # JSON object
    version = Column(Integer, nullable=False, default=0)

    # ISO-8601 strings, kept verbatim so records round-trip unchanged
    created_at = Column(String(64))
    updated_at = Column(String(64))

    __table_args__ = (
        Index("ix_workflow_records_workflow_state", "workflow", "state"),
    )

    def to_record(self) -> WorkflowRecord:
        return WorkflowRecord(
            record_id=self.id,
            state=self.state,
            payload=json.loads(self.payload) if self.payload else {},
            workflow=self.workflow or "",
            version=self.version,
            created_at=self.created_at or "",
            updated_at=self.updated_at or "",
        )


class SqlStateStore(StateStore):

    def __init__(self, registry, database_url: str, echo: bool = False):
        super().__init__(registry)
        self.database_url = database_url

        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            self._ensure_sqlite_dir(database_url)

        try:
            self.engine = create_engine(database_url, echo=echo, connect_args=connect_args)

            if self.engine.dialect.name == "sqlite":
                @event.listens_for(self.engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=FULL")
                    cursor.close()

            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot open database {database_url}: {e}") from e

        self.Session = sessionmaker(bind=self.engine)

    @staticmethod
    def _ensure_sqlite_dir(database_url: str) -> None:
        path = database_url.split(":///", 1)[-1]
        if path and path != ":memory:" and not database_url.endswith("://"):
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def get_session(self) -> Session:
        """Get a new database session"""
        return self.Session()

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # StateStore
    # =========================================================================

    def save(self, record: WorkflowRecord) -> None:
        data = self._prepare(record)
        values = dict(
            workflow=data["workflow"],
            state=data["state"],
            payload=json.dumps(data["payload"]),
            version=data["version"],
            updated_at=data["updated_at"],
        )
        try:
            with self.get_session() as session:
                if record.version == 0:
                    session.add(RecordRow(id=record.record_id, created_at=data["created_at"], **values))
                    session.commit()
                else:
                    result = session.execute(
                        update(RecordRow)
                        .where(RecordRow.id == record.record_id)
                        .where(RecordRow.version == record.version)
                        .values(**values)
                    )
                    if result.rowcount != 1:
                        session.rollback()
                        raise ConcurrentModificationError(
                            record.record_id, record.version, self._stored_version(record.record_id)
                        )
                    session.commit()
        except IntegrityError as e:
            # Another writer inserted the same id first
            raise ConcurrentModificationError(
                record.record_id, record.version, self._stored_version(record.record_id)
            ) from e
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save record {record.record_id}: {e}") from e

        self._commit(record, data)

    def _stored_version(self, record_id: str) -> Optional[int]:
        try:
            with self.get_session() as session:
                row = session.get(RecordRow, record_id)
                return row.version if row else None
        except SQLAlchemyError:
            logger.debug("Could not read back version of %s", record_id, exc_info=True)
            return None

    def get(self, record_id: str) -> Optional[WorkflowRecord]:
        try:
            with self.get_session() as session:
                row = session.get(RecordRow, record_id)
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load record {record_id}: {e}") from e

    def list_records(self) -> List[WorkflowRecord]:
        try:
            with self.get_session() as session:
                rows = session.query(RecordRow).order_by(RecordRow.created_at).all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list records: {e}") from e

    def find_unfinished(self) -> List[WorkflowRecord]:
        states = sorted(self.registry.unfinished_states)
        if not states:
            return []
        try:
            with self.get_session() as session:
                rows = session.query(RecordRow).filter(
                    RecordRow.workflow.in_(["", self.registry.name]),
                    RecordRow.state.in_(states),
                ).all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to query unfinished records: {e}") from e
