"""
JSON file snapshot store

Writes {open: [...], closed: [...], timestamp} to <data_dir>/positions.json,
pretty-printed. Saves go through a temp file + os.replace so a crash mid-write
leaves the previous document intact.
An unreadable document is renamed to positions.json.corrupt-<UTC stamp>.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from pyramid_trader.exceptions import PersistenceError, SnapshotFormatError
from pyramid_trader.persistence.base import SnapshotStore
from pyramid_trader.schemas import LedgerSnapshot

logger = logging.getLogger(__name__)


class JsonFileSnapshotStore(SnapshotStore):
    def __init__(self, data_dir: str = "./data", filename: str = "positions.json"):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename

    def load(self) -> Optional[LedgerSnapshot]:
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(f"{self.path} is not valid JSON: {e}") from e

        try:
            return LedgerSnapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotFormatError(f"{self.path} is not a ledger snapshot: {e}") from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            document = snapshot.model_dump(mode="json", by_alias=True)
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

        logger.debug(f"Saved snapshot to {self.path}")

    def quarantine(self, now: datetime) -> str:
        target = self.path.with_name(f"{self.path.name}.corrupt-{now.strftime('%Y%m%dT%H%M%SZ')}")
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise PersistenceError(f"Could not move {self.path} aside: {e}") from e

        logger.warning(f"Moved unreadable snapshot {self.path} to {target}")
        return str(target)
