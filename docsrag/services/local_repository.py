"""Local directory document source.

Serves markdown files from disk with the same interface as the GitHub client,
for offline index builds.
"""

import logging
from pathlib import Path

from docsrag.knowledge.models import RepositoryFile

logger = logging.getLogger(__name__)


class LocalRepository:
    """Markdown document source rooted at a local directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def identifier(self) -> str:
        return str(self.root)

    async def list_markdown_files(
        self,
        path: str = "",
        recursive: bool = True,
    ) -> list[RepositoryFile]:
        """List markdown files under ``path`` relative to the root."""
        base = self.root / path
        if not base.exists():
            return []

        pattern = "**/*.md" if recursive else "*.md"
        files = [
            RepositoryFile(name=md_file.name, path=md_file.relative_to(self.root).as_posix())
            for md_file in sorted(base.glob(pattern))
            if md_file.is_file()
        ]
        logger.info(f"Found {len(files)} markdown files in {self.root}")
        return files

    async def get_file_content(self, path: str) -> str:
        """Read a file as UTF-8 text.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        return (self.root / path).read_text(encoding="utf-8")
