"""
SQL snapshot store

Keeps the latest ledger document in the ledger_snapshots table (row id 1),
through a synchronous SQLAlchemy session. The ledger's write-through model
is synchronous, so no async engine here.
An unreadable row 1 is moved to the next free id and left there.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from pyramid_trader.database import create_db_engine, create_session_maker, init_db
from pyramid_trader.exceptions import PersistenceError, SnapshotFormatError
from pyramid_trader.models import LedgerSnapshotRecord
from pyramid_trader.persistence.base import SnapshotStore
from pyramid_trader.schemas import LedgerSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_ROW_ID = 1


class SqlSnapshotStore(SnapshotStore):
    def __init__(self, database_url: str = "sqlite:///./data/positions.db", engine=None):
        url = make_url(database_url)
        if engine is None and url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.engine = engine or create_db_engine(database_url)
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialize snapshot database: {e}") from e
        self.session_maker = create_session_maker(self.engine)

    def load(self) -> Optional[LedgerSnapshot]:
        try:
            with self.session_maker() as session:
                record = session.get(LedgerSnapshotRecord, SNAPSHOT_ROW_ID)
                payload = record.payload if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read snapshot row: {e}") from e

        if payload is None:
            return None

        try:
            return LedgerSnapshot.model_validate(payload)
        except ValidationError as e:
            raise SnapshotFormatError(f"Stored snapshot is not a ledger document: {e}") from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        document = snapshot.model_dump(mode="json", by_alias=True)
        try:
            with self.session_maker() as session:
                record = session.get(LedgerSnapshotRecord, SNAPSHOT_ROW_ID)
                if record is None:
                    record = LedgerSnapshotRecord(id=SNAPSHOT_ROW_ID)
                    session.add(record)
                record.saved_at = snapshot.timestamp
                record.open_count = len(snapshot.open_positions)
                record.closed_count = len(snapshot.closed_positions)
                record.payload = document
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not write snapshot row: {e}") from e

        logger.debug(
            f"Saved snapshot row ({record.open_count} open, {record.closed_count} closed)"
        )

    def quarantine(self, now: datetime) -> str:
        try:
            with self.session_maker() as session:
                record = session.get(LedgerSnapshotRecord, SNAPSHOT_ROW_ID)
                if record is None:
                    raise PersistenceError("No snapshot row to move aside")
                new_id = (session.scalar(select(func.max(LedgerSnapshotRecord.id))) or SNAPSHOT_ROW_ID) + 1
                session.add(LedgerSnapshotRecord(
                    id=new_id,
                    saved_at=record.saved_at or now,
                    open_count=record.open_count,
                    closed_count=record.closed_count,
                    payload=record.payload,
                ))
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not move snapshot row aside: {e}") from e

        logger.warning(f"Moved unreadable snapshot row {SNAPSHOT_ROW_ID} to row {new_id}")
        return f"ledger_snapshots row {new_id}"
