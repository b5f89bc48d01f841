"""Storage backends for the expense document.

Both backends read the whole document and overwrite it whole. Every load
returns a version token; a save only succeeds if the stored document still
matches the token it was based on.
"""

import hashlib
import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Protocol

from .clients.github import GitHubContentsClient
from .config import Settings
from .exceptions import DataIntegrityError, StoreConflictError, StoreError
from .migration import migrate_data
from .models import GroupedExpenseData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """A loaded document and the version token it was read at."""

    data: GroupedExpenseData
    version: str


class ExpenseStore(Protocol):
    """Read-modify-write storage for the expense document."""

    def load(self) -> StoreSnapshot: ...

    def save(self, data: GroupedExpenseData, version: str) -> str: ...

    def close(self) -> None: ...


def parse_document(content: bytes) -> GroupedExpenseData:
    """Parse stored bytes, migrating older formats."""
    if not content.strip():
        return GroupedExpenseData()
    try:
        raw = json.loads(content, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise DataIntegrityError(f"Expense document is not valid JSON: {e}") from e
    return migrate_data(raw)


def serialize_document(data: GroupedExpenseData) -> bytes:
    """Serialize a document the way it is stored."""
    return (data.to_json() + "\n").encode("utf-8")


class LocalFileStore:
    """Stores the document as a JSON file; the token is the file's SHA-256."""

    def __init__(self, path: Path):
        """Initialize the store."""
        self.path = Path(path)

    def close(self):
        """Nothing to release."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _read(self) -> tuple[bytes | None, str]:
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return None, ""
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e
        return content, hashlib.sha256(content).hexdigest()

    def load(self) -> StoreSnapshot:
        """Load the document; a missing file is an empty document."""
        content, version = self._read()
        if content is None:
            logger.debug(f"{self.path} does not exist, starting empty")
            return StoreSnapshot(data=GroupedExpenseData(), version="")

        logger.debug(f"Loaded {self.path} (version {version[:8]})")
        return StoreSnapshot(data=parse_document(content), version=version)

    def save(self, data: GroupedExpenseData, version: str) -> str:
        """
        Overwrite the document if it has not changed since `version`.

        Returns:
            The new version token

        Raises:
            StoreConflictError: If the file changed since it was loaded
        """
        _, current = self._read()
        if current != version:
            raise StoreConflictError(f"{self.path} changed since it was last read")

        content = serialize_document(data)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {self.path}: {e}") from e

        new_version = hashlib.sha256(content).hexdigest()
        logger.info(f"Saved {self.path} (version {new_version[:8]})")
        return new_version


class GitHubStore:
    """Stores the document as a file in a GitHub repository; the token is the blob sha."""

    def __init__(self, client: GitHubContentsClient, path: str):
        """Initialize the store."""
        self.client = client
        self.path = path

    def close(self):
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def load(self) -> StoreSnapshot:
        """Load the document; a missing file is an empty document."""
        file = self.client.get_file(self.path)
        if file is None:
            return StoreSnapshot(data=GroupedExpenseData(), version="")

        logger.debug(f"Loaded {self.client.repo}/{self.path} (sha {file.sha[:8]})")
        return StoreSnapshot(data=parse_document(file.content), version=file.sha)

    def save(self, data: GroupedExpenseData, version: str) -> str:
        """Commit the document, conditioned on the blob sha it was read at."""
        message = f"Update expenses - {datetime.now(UTC).isoformat()}"
        new_sha = self.client.put_file(
            self.path, serialize_document(data), sha=version, message=message
        )
        logger.info(f"Committed {self.client.repo}/{self.path} (sha {new_sha[:8]})")
        return new_sha


def open_store(settings: Settings) -> LocalFileStore | GitHubStore:
    """Open GitHub storage if configured, otherwise the local data file."""
    token, repo = settings.github_token, settings.github_repo
    if token and repo:
        client = GitHubContentsClient(
            token=token,
            repo=repo,
            branch=settings.github_branch,
        )
        logger.debug(f"Using GitHub store {repo}")
        return GitHubStore(client, settings.data_file.as_posix())

    logger.debug(f"Using local store {settings.data_file}")
    return LocalFileStore(settings.data_file)
