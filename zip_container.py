"""
Zip Container Module
Reading and writing single-JSON-entry zip projects (.ppsf, .vpr).
"""

import io
import zipfile
import zlib
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from conversion_errors import ConversionError, CorruptArchiveError


@dataclass(frozen=True)
class EntryLookup:
    """Result of searching an archive for its project entry"""
    path: str
    data: bytes
    tried: Tuple[str, ...]


def read_entry(
    data: bytes,
    candidates: Sequence[str],
    file_name: str,
    not_a_zip: Callable[[str], ConversionError]
) -> EntryLookup:
    """
    Open a zip archive and read the first candidate entry present.

    Raises the error built by ``not_a_zip`` when the bytes are not a zip
    archive, and CorruptArchiveError when no candidate exists or the
    entry cannot be decompressed.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise not_a_zip(file_name) from e

    tried = []
    with archive:
        names = set(archive.namelist())
        for path in candidates:
            tried.append(path)
            if path not in names:
                continue
            try:
                return EntryLookup(path, archive.read(path), tuple(tried))
            # NotImplementedError: unknown compression method, RuntimeError: encrypted entry
            except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
                raise CorruptArchiveError(f"Cannot read {path}: {e}", file_name) from e

    raise CorruptArchiveError(
        f"Project entry not found in archive (tried {', '.join(tried)})", file_name
    )


def create_archive(entry_path: str, text: str) -> bytes:
    """Create a zip file holding a single JSON entry"""
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(entry_path, text.encode('utf-8'))

    buffer.seek(0)
    return buffer.getvalue()
