from __future__ import annotations

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass

from psd_grader.config import DOCUMENT_EXTENSION
from psd_grader.errors import ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_MAX_ENTRY_SIZE_BYTES = 1024 * 1024 * 1024
ARCHIVE_MAX_TOTAL_UNCOMPRESSED_BYTES = 4 * 1024 * 1024 * 1024

OS_ARTIFACT_NAMES = {
    name.lower()
    for name in (
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
        ".localized",
        ".DocumentRevisions-V100",
        ".fseventsd",
        ".Spotlight-V100",
        ".TemporaryItems",
        ".Trashes",
        ".VolumeIcon.icns",
        ".com.apple.timemachine.donotpresent",
        ".AppleDouble",
        ".LSOverride",
    )
}
OS_METADATA_FOLDER = "__MACOSX"
TEMP_SUFFIXES = (".tmp", ".temp")


@dataclass(frozen=True)
class ArchiveEntry:
    """A document entry read out of an archive, or the reason it could not be."""

    name: str
    content: bytes | None = None
    error: str | None = None


def _basename(name: str) -> str:
    parts = [segment for segment in name.replace("\\", "/").split("/") if segment]
    return parts[-1] if parts else ""


def is_os_artifact(name: str) -> bool:
    normalized = name.replace("\\", "/")
    basename = _basename(normalized)
    lowered = normalized.lower()
    return (
        basename.lower() in OS_ARTIFACT_NAMES
        or normalized.startswith("._")
        or basename.startswith("._")
        or OS_METADATA_FOLDER in normalized
        or basename.startswith("~$")
        or lowered.endswith(TEMP_SUFFIXES)
    )


def _is_unsafe_entry_name(name: str) -> bool:
    normalized = name.replace("\\", "/")
    if normalized.startswith("/"):
        return True
    return any(segment == ".." for segment in normalized.split("/") if segment)


def _is_document_entry(info: zipfile.ZipInfo) -> bool:
    return not info.is_dir() and info.filename.lower().endswith(DOCUMENT_EXTENSION)


def iter_archive_documents(archive_name: str, content: bytes) -> list[ArchiveEntry]:
    """Read every document entry of a ZIP upload, in stored order.

    OS artifacts and non-document entries are skipped silently. Entries that
    fail a safety guard or cannot be read become ``ArchiveEntry`` records with
    ``error`` set; they never stop the remaining entries.

    Raises ``ArchiveError`` when the container itself cannot be opened.
    """

    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as exc:
        raise ArchiveError(f"Unable to read ZIP archive '{archive_name}': {exc}") from exc

    entries: list[ArchiveEntry] = []
    total_uncompressed_bytes = 0
    skipped = 0

    with archive:
        for info in archive.infolist():
            name = info.filename.replace("\\", "/")
            if is_os_artifact(name):
                skipped += 1
                logger.debug("Skipping OS artifact %s in %s", name, archive_name)
                continue
            if not _is_document_entry(info):
                continue

            if _is_unsafe_entry_name(name):
                entries.append(ArchiveEntry(name=name, error=f"Blocked unsafe archive entry path: {name}"))
                continue
            if info.flag_bits & 0x1:
                entries.append(ArchiveEntry(name=name, error=f"Archive entry '{name}' is password protected."))
                continue
            if info.file_size > ARCHIVE_MAX_ENTRY_SIZE_BYTES:
                entries.append(ArchiveEntry(name=name, error=f"Archive entry '{name}' exceeds the entry size limit."))
                continue
            if (total_uncompressed_bytes + info.file_size) > ARCHIVE_MAX_TOTAL_UNCOMPRESSED_BYTES:
                entries.append(ArchiveEntry(name=name, error=f"Archive entry '{name}' exceeds the total uncompressed size limit."))
                continue

            try:
                payload = archive.read(info)
            except RuntimeError as exc:
                entries.append(ArchiveEntry(name=name, error=f"Archive entry '{name}' requires a password: {exc}"))
                continue
            except (zipfile.BadZipFile, zlib.error, OSError, EOFError) as exc:
                logger.warning("Failed to read %s from %s: %s", name, archive_name, exc)
                entries.append(ArchiveEntry(name=name, error=f"Failed to read archive entry '{name}': {exc}"))
                continue

            total_uncompressed_bytes += len(payload)
            entries.append(ArchiveEntry(name=name, content=payload))

    logger.info(
        "Expanded %s: %d document entries, %d OS artifacts skipped",
        archive_name,
        len(entries),
        skipped,
    )
    return entries
