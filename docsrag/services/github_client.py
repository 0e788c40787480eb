"""GitHub repository client.

Lists markdown files with an iterative walk over the contents API and fetches
decoded file text.
"""

import base64
import logging
import re
import time
from collections import deque
from typing import Any, Optional
from urllib.parse import quote

import httpx

from docsrag.knowledge.models import RepositoryFile
from docsrag.observability import MetricsCollector, get_metrics_backend

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(
    r"^(?:https?://github\.com/)?(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


class RepositoryError(Exception):
    """Raised when the repository service cannot list or fetch files."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def parse_repo_identifier(repo_url: str) -> tuple[str, str]:
    """Split 'owner/repo' (or a github.com URL) into owner and repo name.

    Raises:
        ValueError: If the identifier is not recognizable.
    """
    match = _REPO_URL_RE.match(repo_url.strip())
    if not match:
        raise ValueError(f"Invalid repository identifier: {repo_url!r} (expected owner/repo)")
    return match.group("owner"), match.group("repo")


class GitHubRepository:
    """Markdown document source backed by the GitHub contents API.

    Unauthenticated access works but is rate limited by GitHub.
    """

    def __init__(
        self,
        repo_url: str,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.owner, self.repo = parse_repo_identifier(repo_url)
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.metrics = metrics or get_metrics_backend()

    @property
    def identifier(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "docsrag",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def _get_contents(self, path: str) -> Any:
        url = f"/repos/{self.owner}/{self.repo}/contents/{quote(path, safe='/')}"
        client = self._get_client()

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await client.get(url)
            status_code = response.status_code
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise RepositoryError(
                f"GitHub returned {e.response.status_code} for {self.identifier}/{path or '.'}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise RepositoryError(
                f"GitHub request failed for {self.identifier}/{path or '.'}: {e}"
            ) from e
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_external_api("github", "contents", status_code, duration_ms)

    async def list_markdown_files(
        self,
        path: str = "",
        recursive: bool = True,
        max_depth: int | None = None,
    ) -> list[RepositoryFile]:
        """List markdown files under a path.

        Directories are walked breadth-first from an explicit queue rather
        than by recursion.

        Args:
            path: Directory to start from; "" is the repository root.
            recursive: Descend into subdirectories.
            max_depth: Deepest subdirectory level to visit (None = unbounded).

        Returns:
            RepositoryFile entries for every ``*.md`` file found.

        Raises:
            RepositoryError: If any listing request fails.
        """
        files: list[RepositoryFile] = []
        pending: deque[tuple[str, int]] = deque([(path, 0)])

        while pending:
            current, depth = pending.popleft()
            data = await self._get_contents(current)
            items = data if isinstance(data, list) else [data]

            for item in items:
                item_type = item.get("type")
                name = item.get("name", "")
                if item_type == "file" and name.lower().endswith(".md"):
                    files.append(
                        RepositoryFile(name=name, path=item["path"], sha=item.get("sha", ""))
                    )
                elif item_type == "dir" and recursive:
                    if max_depth is None or depth < max_depth:
                        pending.append((item["path"], depth + 1))

        logger.info(f"Found {len(files)} markdown files in {self.identifier}")
        return files

    async def get_file_content(self, path: str) -> str:
        """Fetch and decode a file's text.

        Returns an empty string when the path does not resolve to file content.

        Raises:
            RepositoryError: If the file is missing or the request fails.
        """
        data = await self._get_contents(path)
        if not isinstance(data, dict) or "content" not in data:
            return ""

        if data.get("encoding", "base64") != "base64":
            return data["content"]
        return base64.b64decode(data["content"]).decode("utf-8", errors="replace")

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubRepository":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
