"""
Snapshot persistence.

Writes one JSON document per monitoring snapshot and reads them back for
offline analysis. Files are write-once; existing files are never touched.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "monitoring-"


class JsonFileSnapshotSink:
    """Best-effort sink writing snapshots as JSON files into a directory.

    Write failures are logged, never raised, so persistence problems cannot
    interfere with the call being monitored.
    """

    def __init__(self, directory: str):
        """Initialize the sink.

        Args:
            directory: Directory snapshots are written to (created on demand)
        """
        self.directory = Path(directory)

    def write(self, snapshot) -> Optional[Path]:
        """Persist a snapshot.

        Args:
            snapshot: Object exposing `to_dict()` and a `timestamp`

        Returns:
            Path of the written file, or None if the write failed
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            millis = int(snapshot.timestamp.timestamp() * 1000)
            path = self.directory / f"{SNAPSHOT_PREFIX}{millis}-{uuid.uuid4().hex[:8]}.json"
            # "x" mode: never overwrite an existing snapshot
            with open(path, 'x', encoding='utf-8') as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            return path
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save monitoring data: {e}")
            return None


def load_snapshots(directory: str, days: Optional[int] = None) -> List[Dict[str, Any]]:
    """Read saved snapshot documents, oldest first.

    Unreadable or malformed files are skipped with a warning.

    Args:
        directory: Directory holding snapshot files
        days: Optional look-back period; older snapshots are ignored

    Returns:
        List of snapshot dictionaries ordered by timestamp
    """
    path = Path(directory)
    if not path.is_dir():
        return []

    cutoff = datetime.now() - timedelta(days=days) if days is not None else None
    snapshots = []
    for file_path in sorted(path.glob(f"{SNAPSHOT_PREFIX}*.json")):
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            timestamp = datetime.fromisoformat(data["timestamp"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping unreadable snapshot {file_path}: {e}")
            continue
        if cutoff is not None and timestamp < cutoff:
            continue
        snapshots.append(data)

    snapshots.sort(key=lambda s: s["timestamp"])
    return snapshots
