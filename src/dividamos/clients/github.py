"""GitHub contents API client."""

import base64
import logging
from dataclasses import dataclass

import httpx

from ..exceptions import StoreConflictError, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitHubFile:
    """A file fetched from a repository, with its blob sha."""

    content: bytes
    sha: str


class GitHubContentsClient:
    """Client for the GitHub REST v3 contents endpoints of one repository."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str,
        repo: str,
        branch: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the GitHub client."""
        self.repo = repo
        self.branch = branch
        self.client = httpx.Client(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github.v3+json",
            },
            timeout=30.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.repo}/contents/{path}"

    def get_file(self, path: str) -> GitHubFile | None:
        """
        Fetch a file from the repository.

        Args:
            path: Path of the file inside the repository

        Returns:
            The decoded file and its sha, or None if it does not exist
        """
        params = {"ref": self.branch} if self.branch else None

        try:
            response = self.client.get(self._contents_url(path), params=params)
            if response.status_code == 404:
                logger.info(f"{path} not found in {self.repo}")
                return None
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"GitHub API error: {e}")
            raise StoreError(f"GitHub API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"GitHub request failed: {e}") from e

        data = response.json()
        return GitHubFile(content=base64.b64decode(data["content"]), sha=data["sha"])

    def put_file(self, path: str, content: bytes, sha: str, message: str) -> str:
        """
        Create or replace a file in the repository.

        Args:
            path: Path of the file inside the repository
            content: New file content
            sha: Blob sha the update is based on ("" to create the file)
            message: Commit message

        Returns:
            The sha of the new blob

        Raises:
            StoreConflictError: If the file changed since `sha` was read
            StoreError: For any other failure
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if sha:
            payload["sha"] = sha
        if self.branch:
            payload["branch"] = self.branch

        try:
            response = self.client.put(self._contents_url(path), json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (409, 422):
                raise StoreConflictError(
                    f"{path} in {self.repo} changed since it was last read"
                ) from e
            logger.error(f"GitHub API error: {e}")
            logger.error(f"Response body: {e.response.text}")
            raise StoreError(f"GitHub API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"GitHub request failed: {e}") from e

        new_sha: str = response.json()["content"]["sha"]
        return new_sha
