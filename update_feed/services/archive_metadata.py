"""Read version metadata embedded in WordPress plugin/theme zip archives.

A plugin archive carries its version in the header comment of its main
PHP file; a theme archive in the header of ``style.css``. Both live at
the archive root or one directory deep (``slug/slug.php``).
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Headers are only read from the start of a file
HEADER_READ_BYTES = 8192


@dataclass(frozen=True)
class ArchiveMetadata:
    """Metadata found in a release archive."""

    kind: str  # "plugin" or "theme"
    name: str
    version: str | None


def _header_value(header: str, field: str) -> str | None:
    pattern = re.compile(
        rf"^(?:[ \t]*<\?php)?[ \t/*#@]*{re.escape(field)}:(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )
    match = pattern.search(header)
    if not match:
        return None
    value = re.sub(r"\s*(?:\*/|\?>).*", "", match.group(1)).strip()
    return value or None


def _candidate_entries(archive: zipfile.ZipFile) -> list[str]:
    """Entries at the archive root or one directory below it."""
    entries = []
    for name in archive.namelist():
        if name.endswith("/") or name.startswith("__MACOSX/"):
            continue
        if name.count("/") <= 1:
            entries.append(name)
    return sorted(entries, key=lambda n: (n.count("/"), n))


def parse_headers(archive: zipfile.ZipFile) -> ArchiveMetadata | None:
    """Find the plugin or theme header in an open archive."""
    for entry in _candidate_entries(archive):
        basename = entry.rsplit("/", 1)[-1].lower()
        if basename.endswith(".php"):
            kind, name_field = "plugin", "Plugin Name"
        elif basename == "style.css":
            kind, name_field = "theme", "Theme Name"
        else:
            continue

        with archive.open(entry) as fh:
            header = fh.read(HEADER_READ_BYTES).decode("utf-8", errors="replace")
        header = header.replace("\r", "\n")

        name = _header_value(header, name_field)
        if name:
            return ArchiveMetadata(kind=kind, name=name, version=_header_value(header, "Version"))
    return None


def read_archive_metadata(path: str | Path) -> ArchiveMetadata | None:
    """Read metadata from a zip on disk; None if unreadable or not a package."""
    path = Path(path)
    if not path.is_file():
        return None
    try:
        with zipfile.ZipFile(path) as archive:
            return parse_headers(archive)
    except (zipfile.BadZipFile, OSError, KeyError) as e:
        logger.debug(f"Could not read package metadata from {path.name}: {e}")
        return None
