# caduceus/data_processing/record_store.py
#
# RecordStore
# Holds the last fetched snapshot of every source collection together with
# its fetch timestamp and error state. Snapshots are replaced wholesale; a
# failed source contributes an empty collection to the current cycle while
# remembering when it last succeeded.

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from .loaders import Source, empty_collection, prepare_collection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSnapshot:
    """One source's cleaned records plus its fetch status."""
    source: Source
    records: pd.DataFrame
    ok: bool = False
    last_updated: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def record_count(self) -> int:
        return len(self.records) if self.ok else 0


@dataclass
class RecordStore:
    """
    Per-source snapshot holder passed explicitly through the orchestrator.

    `collection()` only hands out records fetched successfully in the current
    cycle; a failed source reads as empty even if older records are retained.
    """
    snapshots: Dict[Source, SourceSnapshot] = field(default_factory=dict)

    def __post_init__(self):
        for source in Source:
            if source not in self.snapshots:
                self.snapshots[source] = SourceSnapshot(source=source, records=empty_collection(source))

    def replace(self, source: Source, payload: Any, fetched_at: datetime) -> SourceSnapshot:
        """Replaces the snapshot of `source` with a freshly prepared collection."""
        source = Source(source)
        snapshot = SourceSnapshot(
            source=source,
            records=prepare_collection(source, payload),
            ok=True,
            last_updated=fetched_at,
            error=None,
        )
        self.snapshots[source] = snapshot
        return snapshot

    def mark_failed(self, source: Source, error: str) -> SourceSnapshot:
        """Flags `source` as unavailable; keeps the timestamp of its last success."""
        source = Source(source)
        previous = self.snapshots[source]
        snapshot = replace(previous, ok=False, error=error)
        self.snapshots[source] = snapshot
        logger.warning(f"Source '{source.value}' unavailable this cycle: {error}")
        return snapshot

    def collection(self, source: Source) -> pd.DataFrame:
        """Records usable for aggregation, or an empty schema-shaped frame."""
        snapshot = self.snapshots[Source(source)]
        if not snapshot.ok:
            return empty_collection(snapshot.source)
        return snapshot.records

    def is_ok(self, source: Source) -> bool:
        return self.snapshots[Source(source)].ok

    def failed_sources(self) -> List[Source]:
        return [source for source, snap in self.snapshots.items() if not snap.ok]

    def statuses(self) -> Dict[str, Dict[str, Any]]:
        return {
            source.value: {
                'ok': snap.ok,
                'last_updated': snap.last_updated,
                'error': snap.error,
                'record_count': snap.record_count,
            }
            for source, snap in self.snapshots.items()
        }
