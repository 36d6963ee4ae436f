"""
Lazy reader over the members of the feed archive.
"""
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional


class CorruptArchiveError(RuntimeError):
    """Raised when the archive cannot be opened or its index cannot be read."""


class UnreadableEntryError(ValueError):
    """A single member whose bytes cannot be read (bad CRC, truncated data)."""

    def __init__(self, entry_name: str, reason: str):
        super().__init__(f"Cannot read member {entry_name}: {reason}")
        self.entry_name = entry_name
        self.reason = reason


@dataclass(frozen=True)
class RawEntry:
    """
    One archive member: its path inside the archive and its bytes.

    When the member's data is damaged, content is empty and error holds
    the read failure.
    """
    name: str
    content: bytes
    error: Optional[UnreadableEntryError] = None


class ArchiveReader:
    """
    Yields archive members one at a time.

    Each call to entries() reopens the archive, so iteration can be
    restarted and yields the same sequence for the same file. Only one
    member's bytes are held in memory at a time.
    """

    def __init__(self, archive_path: Path):
        self.archive_path = Path(archive_path)

    def entries(self) -> Iterator[RawEntry]:
        """
        Iterate over file members in archive order.

        A damaged member does not end iteration: it is yielded with its
        error set and the remaining members follow.

        Raises:
            CorruptArchiveError: If the archive cannot be opened or its index
                cannot be read
        """
        try:
            archive = zipfile.ZipFile(self.archive_path, "r")
        except (zipfile.BadZipFile, OSError) as exc:
            raise CorruptArchiveError(f"Cannot open archive {self.archive_path}: {exc}") from exc

        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                try:
                    with archive.open(info) as handle:
                        content = handle.read()
                except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as exc:
                    yield RawEntry(
                        name=info.filename,
                        content=b"",
                        error=UnreadableEntryError(info.filename, str(exc)),
                    )
                    continue
                yield RawEntry(name=info.filename, content=content)

    def __iter__(self) -> Iterator[RawEntry]:
        return self.entries()
