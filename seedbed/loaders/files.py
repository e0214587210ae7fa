"""File producer - documents from files matched by glob patterns."""

import asyncio
import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path

from langchain_text_splitters import RecursiveCharacterTextSplitter

from seedbed.core.exception import ConfigError, ProducerError
from seedbed.core.types import ContentItem

logger = logging.getLogger(__name__)


def resolve_files(patterns: list[str]) -> list[Path]:
    """Resolve glob patterns to a sorted list of files.

    Matched directories are walked recursively.
    """
    files: set[Path] = set()
    for pattern in patterns:
        for match in glob.glob(pattern, recursive=True):
            path = Path(match)
            if path.is_dir():
                files.update(p for p in path.rglob("*") if p.is_file())
            elif path.is_file():
                files.add(path)
    return sorted(p.resolve() for p in files)


def parse_file(path: Path, encoding: str = "utf-8") -> str:
    """Read a file's text. PDFs are parsed with pypdf, anything else as text."""
    if path.suffix.lower() == ".pdf":
        return _extract_pdf_text(path)
    return path.read_text(encoding=encoding)


def _extract_pdf_text(path: Path) -> str:
    from pypdf import PdfReader

    with open(path, "rb") as file:
        reader = PdfReader(file)
        text_parts = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(text_parts)


@dataclass
class FileProducer:
    """Loads every file matching a set of glob patterns.

    Each file becomes one content item whose id is its resolved path, or
    with ``chunk_size`` set, one item per chunk with id ``<path>#<index>``.
    An unreadable file fails the whole tick so a partial snapshot never
    reads as a deletion.

    Example:
        producer = FileProducer(["knowledge/**/*.md"])
        items = await producer.produce()
    """

    patterns: list[str]
    require_matches: bool = False
    encoding: str = "utf-8"
    chunk_size: int | None = None
    chunk_overlap: int = 200
    name: str = field(default="files")

    def __post_init__(self):
        if isinstance(self.patterns, str):
            self.patterns = [self.patterns]
        if not self.patterns:
            raise ConfigError("File producer requires at least one glob pattern")
        for pattern in self.patterns:
            if not isinstance(pattern, str) or not pattern.strip():
                raise ConfigError(f"Invalid glob pattern: {pattern!r}")
        if self.chunk_size is not None and self.chunk_size <= self.chunk_overlap:
            raise ConfigError(
                f"chunk_size ({self.chunk_size}) must exceed chunk_overlap ({self.chunk_overlap})"
            )

    def validate(self) -> None:
        if self.require_matches and not resolve_files(self.patterns):
            raise ConfigError(f"No documents matched the glob patterns {self.patterns}")

    async def produce(self) -> list[ContentItem]:
        return await asyncio.to_thread(self._load)

    def _splitter(self) -> RecursiveCharacterTextSplitter | None:
        if self.chunk_size is None:
            return None
        return RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def _load(self) -> list[ContentItem]:
        splitter = self._splitter()
        items = []
        for path in resolve_files(self.patterns):
            try:
                text = parse_file(path, self.encoding)
            except (OSError, UnicodeDecodeError) as e:
                raise ProducerError(f"Could not read {path}: {e}", producer=self.name) from e

            metadata = {
                "source": str(path),
                "filename": path.name,
                "file_type": path.suffix,
            }
            if splitter is None:
                items.append(
                    ContentItem.from_payload(
                        id=str(path), payload=text, source_tag="file", metadata=metadata
                    )
                )
                continue

            for index, chunk in enumerate(splitter.split_text(text)):
                items.append(
                    ContentItem.from_payload(
                        id=f"{path}#{index}",
                        payload=chunk,
                        source_tag="file",
                        metadata={**metadata, "chunk": index},
                    )
                )

        logger.debug("File producer loaded %d items", len(items))
        return items
