"""
Source handler for the data stores being captured.

Each logical store (appointments, messages, ...) is one JSON document in a
shared data directory. The store name is the file name without ".json".
"""

import json
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, List


class AggregationReadError(Exception):
    """Raised when one data document cannot be read or parsed."""
    pass


class DataDirectorySource:
    """
    Read-only access to the JSON data documents in one directory.
    """

    def __init__(self, data_dir: str, exclude_patterns: List[str] = None):
        """
        Initialize data directory source.

        Args:
            data_dir: Directory holding one <store>.json file per store
            exclude_patterns: Glob patterns matched against file names that
                are never treated as data documents (ledger, temp files)
        """
        self.data_dir = Path(data_dir)
        self.exclude_patterns = exclude_patterns or []

    def _should_exclude(self, path: Path) -> bool:
        return any(fnmatch(path.name, pattern) for pattern in self.exclude_patterns)

    def _path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def list_documents(self) -> List[str]:
        """
        List the logical store names currently present.

        Returns:
            Sorted list of store names (empty if the directory is missing)
        """
        if not self.data_dir.is_dir():
            return []

        names = []
        for path in self.data_dir.iterdir():
            if not path.is_file() or path.suffix != '.json':
                continue
            if self._should_exclude(path):
                continue
            names.append(path.stem)

        return sorted(names)

    def read_document(self, name: str) -> Any:
        """
        Read and parse one data document.

        Args:
            name: Logical store name

        Returns:
            Parsed JSON content

        Raises:
            AggregationReadError: If the file cannot be read or parsed
        """
        path = self._path_for(name)

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise AggregationReadError(f"Cannot read data document {name}: {e}")
        except json.JSONDecodeError as e:
            raise AggregationReadError(f"Invalid JSON in data document {name}: {e}")
