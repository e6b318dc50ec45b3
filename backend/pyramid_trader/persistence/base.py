"""
SnapshotStore Abstract Base Class

The ledger only ever sees load/save of a whole LedgerSnapshot. Stores raise
PersistenceError (or SnapshotFormatError) and never OS/driver exceptions.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from pyramid_trader.exceptions import PersistenceError, SnapshotFormatError
from pyramid_trader.schemas import LedgerSnapshot


class SnapshotStore(ABC):
    """Load/save capability for the serialized ledger state."""

    @abstractmethod
    def load(self) -> Optional[LedgerSnapshot]:
        """
        Read the last saved snapshot.

        Returns:
            LedgerSnapshot, or None if nothing has been saved yet

        Raises:
            PersistenceError: storage could not be read
            SnapshotFormatError: stored document is not a valid snapshot
        """
        pass

    @abstractmethod
    def save(self, snapshot: LedgerSnapshot) -> None:
        """
        Replace the stored snapshot.

        Raises:
            PersistenceError: storage could not be written
        """
        pass

    @abstractmethod
    def quarantine(self, now: datetime) -> str:
        """
        Move the stored document aside so the next save does not replace it.

        Called after load() failed; the moved copy is never read back.

        Returns:
            Where the document now lives (for the log)

        Raises:
            PersistenceError: the document could not be moved
        """
        pass


class InMemorySnapshotStore(SnapshotStore):
    """Keeps the serialized document in memory (round-trips through JSON mode)."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self.document: Optional[dict] = None
        self.save_count = 0
        self.quarantined: List[dict] = []
        if snapshot is not None:
            self.document = snapshot.model_dump(mode="json", by_alias=True)

    def load(self) -> Optional[LedgerSnapshot]:
        if self.document is None:
            return None
        try:
            return LedgerSnapshot.model_validate(self.document)
        except ValidationError as e:
            raise SnapshotFormatError(f"In-memory snapshot is not a ledger document: {e}") from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        self.document = snapshot.model_dump(mode="json", by_alias=True)
        self.save_count += 1

    def quarantine(self, now: datetime) -> str:
        if self.document is None:
            raise PersistenceError("No in-memory document to move aside")
        self.quarantined.append(self.document)
        self.document = None
        return f"quarantined[{len(self.quarantined) - 1}]"
