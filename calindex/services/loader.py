"""Loader service for reading object export files.

Handles decoding, splitting multi-object exports on their OBJECT headers,
and routing each object through the parser registry. A failing object is
recorded as a LoadError and the rest of the batch is still loaded.
"""

import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from calindex.config.settings import settings
from calindex.core.exceptions import FileSizeExceededError, ParserException, SourcePathNotFoundError
from calindex.core.models import Entity
from calindex.core.parsers import parse_object
from calindex.core.parsers.base import detect_and_decode
from calindex.core.parsers.declaration import KIND_TOKENS
from calindex.core.parsers.sections import strip_bom

_OBJECT_BOUNDARY_RE = re.compile(
    rf"^OBJECT[ \t]+(?:{'|'.join(KIND_TOKENS)})[ \t]+\d+[ \t]+\S.*$",
    re.MULTILINE,
)


@dataclass
class LoadError:
    """A single object or file that could not be loaded."""

    file_path: str
    error_type: str  # exception class name, or "warning"
    message: str
    object_index: Optional[int] = None  # 0-based position in the file

    def to_dict(self) -> dict:
        result = {
            "file_path": self.file_path,
            "error_type": self.error_type,
            "message": self.message,
        }
        if self.object_index is not None:
            result["object_index"] = self.object_index
        return result


@dataclass
class LoadStats:
    """Counters for one load call."""

    total_files: int = 0
    total_objects: int = 0
    total_bytes: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "total_objects": self.total_objects,
            "total_bytes": self.total_bytes,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class LoadResult:
    """Objects parsed by one load call plus the failures met on the way."""

    objects: list[Entity] = field(default_factory=list)
    errors: list[LoadError] = field(default_factory=list)
    stats: LoadStats = field(default_factory=LoadStats)
    files: list[str] = field(default_factory=list)

    def merge(self, other: "LoadResult") -> None:
        self.objects.extend(other.objects)
        self.errors.extend(other.errors)
        self.files.extend(other.files)
        self.stats.total_files += other.stats.total_files
        self.stats.total_objects += other.stats.total_objects
        self.stats.total_bytes += other.stats.total_bytes


def split_objects(text: str) -> list[str]:
    """Split an export into one text chunk per OBJECT header."""
    text = strip_bom(text)
    starts = [match.start() for match in _OBJECT_BOUNDARY_RE.finditer(text)]
    chunks = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        chunks.append(text[start:end].strip())
    return chunks


class ObjectLoader:
    """Reads export files and parses the objects they contain."""

    def __init__(self, encodings: Optional[list[str]] = None, max_file_size: Optional[int] = None):
        self.encodings = tuple(encodings or settings.FILE_ENCODINGS)
        self.max_file_size = max_file_size if max_file_size is not None else settings.get_max_file_size()

    def decode_bytes(self, raw: bytes) -> tuple[str, str]:
        """Decode file bytes; returns (text, encoding)."""
        return detect_and_decode(raw, self.encodings)

    def parse_text(self, text: str, source: str = "<string>") -> LoadResult:
        """Parse every object in an export text."""
        result = LoadResult()
        chunks = split_objects(text)
        if not chunks:
            result.errors.append(LoadError(source, "warning", "No OBJECT declarations found"))
            logger.warning(f"No objects found in {source}")
            return result

        for index, chunk in enumerate(chunks):
            try:
                entity = parse_object(chunk)
            except ParserException as e:
                logger.warning(f"Failed to parse object {index} in {source}: {e}")
                result.errors.append(LoadError(source, type(e).__name__, str(e), object_index=index))
                continue
            result.objects.append(entity)

        result.stats.total_objects = len(result.objects)
        return result

    def load_file(self, path: str | Path) -> LoadResult:
        """Load one export file.

        Raises:
            SourcePathNotFoundError: If the file does not exist
            FileSizeExceededError: If the file is larger than the configured limit
        """
        start = time.perf_counter()
        file_path = Path(path)
        if not file_path.is_file():
            raise SourcePathNotFoundError(str(path))

        size = file_path.stat().st_size
        if size > self.max_file_size:
            raise FileSizeExceededError(file_path.name, size, self.max_file_size)

        text, encoding = self.decode_bytes(file_path.read_bytes())
        logger.debug(f"Decoded {file_path.name} as {encoding}")

        result = self.parse_text(text, source=str(file_path))
        result.files.append(str(file_path))
        result.stats.total_files = 1
        result.stats.total_bytes = size
        result.stats.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Loaded {len(result.objects)} objects from {file_path.name} "
            f"({len(result.errors)} errors)"
        )
        return result

    def load_directory(
        self,
        path: str | Path,
        pattern: Optional[str] = None,
        recursive: bool = True,
    ) -> LoadResult:
        """Load every matching file under a directory.

        Oversized files are recorded as errors; the rest still load.

        Raises:
            SourcePathNotFoundError: If the directory does not exist
        """
        start = time.perf_counter()
        directory = Path(path)
        if not directory.is_dir():
            raise SourcePathNotFoundError(str(path))

        glob = pattern or settings.OBJECT_FILE_PATTERN
        files = sorted(directory.rglob(glob) if recursive else directory.glob(glob))
        result = LoadResult()
        for file_path in files:
            if not file_path.is_file():
                continue
            try:
                result.merge(self.load_file(file_path))
            except FileSizeExceededError as e:
                logger.warning(str(e))
                result.errors.append(LoadError(str(file_path), type(e).__name__, str(e)))

        result.stats.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Loaded {result.stats.total_objects} objects from {result.stats.total_files} files "
            f"in {directory} ({result.stats.duration_ms:.0f} ms)"
        )
        return result

    def load(self, path: str | Path, pattern: Optional[str] = None, recursive: bool = True) -> LoadResult:
        """Load a file or a directory."""
        if Path(path).is_dir():
            return self.load_directory(path, pattern=pattern, recursive=recursive)
        return self.load_file(path)
