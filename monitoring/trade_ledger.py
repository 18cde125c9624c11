"""
Trade Ledger
Append-only CSV record of every market attempt.
"""
import csv
from pathlib import Path
from typing import Dict, List, Union

from loguru import logger

import config as cfg
from execution.errors import LedgerError
from models import LEDGER_HEADER, TradeRecord


class TradeLedger:
    """One row per market attempt; the header is written once, to an empty file."""

    def __init__(self, path: Union[str, Path] = cfg.LEDGER_FILE):
        self.path = Path(path)

    def _needs_header(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size == 0

    def append(self, record: TradeRecord) -> None:
        if record.flushed:
            raise LedgerError(f"Record for '{record.title}' already written")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = self._needs_header()

        with self.path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if write_header:
                writer.writerow(LEDGER_HEADER)
            writer.writerow(record.to_row())

        record.flushed = True
        logger.info(f"Ledger: {record.title} | {record.status} | {record.final_status}")

    def read(self) -> List[Dict[str, str]]:
        if not self.path.exists():
            return []
        with self.path.open(newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
