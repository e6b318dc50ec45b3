"""Ledger persistence model: one row holding the latest snapshot document."""

from sqlalchemy import JSON, Column, DateTime, Integer

from pyramid_trader.database import Base


class LedgerSnapshotRecord(Base):
    """
    Latest ledger snapshot stored as a JSON document.

    Row id 1 is overwritten on every save; open/closed counts are kept in
    their own columns for quick inspection without decoding the payload.
    """
    __tablename__ = "ledger_snapshots"

    id = Column(Integer, primary_key=True)
    saved_at = Column(DateTime(timezone=True), nullable=False)
    open_count = Column(Integer, default=0)
    closed_count = Column(Integer, default=0)
    payload = Column(JSON, nullable=False)  # {open: [...], closed: [...], timestamp}
