"""
Snapshot aggregation - assembles every data document into one snapshot.

Snapshot format:
    {
        "timestamp": ISO 8601 capture time,
        "owner_scope": tenant id or null (system-wide),
        "type": "full" | "incremental" | "manual",
        "files": {store name: parsed document, ...}
    }
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from snapvault.models import utcnow
from .sources import DataDirectorySource, AggregationReadError


logger = logging.getLogger(__name__)


class SnapshotAggregator:
    """
    Builds snapshot documents from a data document source.

    A document that cannot be read is logged and left out; one bad store
    never aborts the whole snapshot.
    """

    def __init__(self, source: DataDirectorySource):
        self.source = source

    def aggregate(self, owner_scope: Optional[str], backup_type: str,
                  timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Capture all current data documents.

        Args:
            owner_scope: Tenant the snapshot belongs to (None = system-wide)
            backup_type: Backup type label
            timestamp: Capture time (default: now)

        Returns:
            Snapshot document dict
        """
        timestamp = timestamp or utcnow()
        files: Dict[str, Any] = {}
        skipped = []

        for name in self.source.list_documents():
            try:
                files[name] = self.source.read_document(name)
            except AggregationReadError as e:
                logger.warning(f"Skipping data document {name}: {e}")
                skipped.append(name)

        if skipped:
            logger.warning(f"Snapshot captured {len(files)} documents, skipped {len(skipped)}: {', '.join(skipped)}")
        else:
            logger.debug(f"Snapshot captured {len(files)} documents")

        return {
            'timestamp': timestamp.isoformat(),
            'owner_scope': owner_scope,
            'type': backup_type,
            'files': files
        }

    @staticmethod
    def serialize(snapshot: Dict[str, Any]) -> str:
        """Canonical JSON text of a snapshot; checksums are computed over it."""
        return json.dumps(snapshot, indent=2, ensure_ascii=False)
