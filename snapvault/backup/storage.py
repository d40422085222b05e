"""
Storage handler for backup artifacts.

Artifacts are single JSON files in one local directory:
{base_path}/backup-<timestamp>-<id prefix>.json
"""

import os
import tempfile
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class ArtifactWriteError(StorageError):
    """Raised when an artifact cannot be written (disk full, permissions)."""
    pass


def format_timestamp(now: datetime) -> str:
    """
    ISO 8601 UTC timestamp with millisecond precision and a Z suffix.

    Example: 2024-01-15T12:00:00.000Z
    """
    now = now.astimezone(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def atomic_write_text(path: Path, text: str):
    """
    Write text to path through a temporary file in the same directory.

    The temporary file is fsynced and then renamed over path, so readers
    see either the old content or the new content, never a partial file.
    """
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix='.tmp')

    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class ArtifactStorage:
    """
    Handler for storing backup artifacts in the local filesystem.
    """

    def __init__(self, base_path: str):
        """
        Initialize artifact storage handler.

        Args:
            base_path: Directory for backup artifacts (created on first write)
        """
        self.base_path = Path(base_path)

    @staticmethod
    def generate_filename(backup_id: str, now: Optional[datetime] = None) -> str:
        """
        Generate the artifact file name for a backup.

        Args:
            backup_id: Backup identifier
            now: Timestamp to embed (default: current UTC time)

        Returns:
            backup-<timestamp with ':' and '.' replaced by '-'>-<id[:8]>.json
        """
        timestamp = format_timestamp(now or datetime.now(timezone.utc))
        timestamp = timestamp.replace(':', '-').replace('.', '-')
        return f"backup-{timestamp}-{backup_id[:8]}.json"

    def write(self, filename: str, text: str) -> str:
        """
        Write an artifact.

        Args:
            filename: Artifact file name (no directories)
            text: Artifact content

        Returns:
            Full path of the written artifact

        Raises:
            ArtifactWriteError: If the artifact cannot be written
        """
        dest_path = self.base_path / filename

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            atomic_write_text(dest_path, text)
            return str(dest_path)

        except PermissionError:
            raise ArtifactWriteError(f"Permission denied writing artifact {filename}")
        except OSError as e:
            raise ArtifactWriteError(f"Failed to write artifact {filename}: {e.strerror or e.__class__.__name__}")

    def get_size(self, path: str) -> int:
        """
        Get the size of an artifact in bytes.

        Raises:
            StorageError: If file doesn't exist or cannot be accessed
        """
        try:
            return os.path.getsize(path)
        except FileNotFoundError:
            raise StorageError(f"Artifact not found: {os.path.basename(path)}")
        except OSError as e:
            raise StorageError(f"Failed to get artifact size: {e.strerror}")

    def exists(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isfile(path)

    def read(self, path: str) -> str:
        """
        Read an artifact as text.

        Raises:
            StorageError: If the artifact cannot be read
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read artifact {os.path.basename(path)}: {e}")

    def delete(self, path: str):
        """
        Delete an artifact. Missing files are ignored.

        Raises:
            StorageError: If deletion fails
        """
        full_path = Path(path)

        try:
            if full_path.exists():
                full_path.unlink()
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {full_path.name}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to delete artifact: {e}")

