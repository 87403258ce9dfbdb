"""Checkpoint system for tracking request-file progress."""

import fcntl
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from precise_vocab.models import CheckpointData


class CheckpointManager:
    """Manages checkpointing for request-file runs."""

    def __init__(self, checkpoint_path: Path):
        """
        Initialize checkpoint manager.

        Args:
            checkpoint_path: Path to the checkpoint JSON file
        """
        self.checkpoint_path = checkpoint_path
        self._lock_path = checkpoint_path.with_suffix(".lock")
        self._data: Optional[CheckpointData] = None

    @contextmanager
    def _file_lock(self):
        """Context manager for file locking using fcntl."""
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def load(self) -> CheckpointData:
        """Load checkpoint data from file, or create new if not exists."""
        if self._data is not None:
            return self._data

        with self._file_lock():
            if self.checkpoint_path.exists():
                with open(self.checkpoint_path, "r") as f:
                    self._data = CheckpointData(**json.load(f))
            else:
                self._data = CheckpointData()

        return self._data

    def save(self) -> None:
        """Save current checkpoint data to file."""
        if self._data is None:
            return

        with self._file_lock():
            self.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.checkpoint_path, "w") as f:
                json.dump(self._data.model_dump(), f, indent=2)

    def mark_processed(self, key: str) -> None:
        """
        Mark a request as successfully processed.

        A request that failed earlier and now succeeds leaves the failed list.

        Args:
            key: Checkpoint key of the request
        """
        data = self.load()
        if key not in data.processed_requests:
            data.processed_requests.append(key)
        if key in data.failed_requests:
            data.failed_requests.remove(key)
        self.save()

    def mark_failed(self, key: str) -> None:
        """Mark a request as failed."""
        data = self.load()
        if key not in data.failed_requests:
            data.failed_requests.append(key)
        self.save()

    def is_processed(self, key: str) -> bool:
        """Check if a request has been processed."""
        return key in self.load().processed_requests

    def get_failed_requests(self) -> list[str]:
        """Get list of requests that failed processing."""
        return self.load().failed_requests.copy()

    def reset(self) -> None:
        """Reset checkpoint to initial state."""
        self._data = CheckpointData()
        if self.checkpoint_path.exists():
            self.checkpoint_path.unlink()

    @property
    def processed_count(self) -> int:
        """Get number of processed requests."""
        return len(self.load().processed_requests)

    @property
    def failed_count(self) -> int:
        """Get number of failed requests."""
        return len(self.load().failed_requests)
