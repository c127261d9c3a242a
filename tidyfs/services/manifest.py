from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime

from tidyfs.models.category import Category
from tidyfs.models.errors import TidyError
from tidyfs.services.env import DEFAULT_ENV, Environment
from tidyfs.services.formatting import format_bytes
from tidyfs.services.fs import DEFAULT_FS, FileSystem

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".tar.gz.manifest"
MANIFEST_NOTICE = (
    "# This manifest is an audit record of deleted files. "
    "It is not a backup: file contents were not kept and cannot be restored."
)

_HEADER_RE = re.compile(r"^(Timestamp|Category|Files|Total Size):\s*(.*)$")


@dataclass(slots=True, frozen=True)
class ManifestInfo:
    path: str
    category: str
    timestamp: str
    file_count: int
    total_size: int
    paths: list[str]


def manifest_dir(env: Environment = DEFAULT_ENV) -> str:
    return env.app_data_dir("backups")


def sanitize_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_")
    return cleaned or "category"


def manifest_name(category: str, when: datetime) -> str:
    return f"{sanitize_name(category)}_{when:%Y%m%d_%H%M%S}{MANIFEST_SUFFIX}"


def render_manifest(category: Category, when: datetime) -> str:
    lines = [
        "# tidyfs deletion manifest",
        MANIFEST_NOTICE,
        f"Timestamp: {when.isoformat(timespec='seconds')}",
        f"Category: {category.name}",
        f"Files: {category.file_count}",
        f"Total Size: {category.size} ({format_bytes(category.size)})",
        "",
    ]
    lines.extend(record.path for record in category.files)
    return "\n".join(lines) + "\n"


def write_manifest(
    category: Category,
    when: datetime,
    env: Environment = DEFAULT_ENV,
    fs: FileSystem = DEFAULT_FS,
) -> str:
    """Write the deletion manifest for *category* and return its path.

    Raises ``TidyError`` (``BACKUP_FAILED``) when it cannot be written.
    """
    directory = manifest_dir(env)
    path = os.path.join(directory, manifest_name(category.name, when))
    try:
        fs.makedirs(directory, 0o700)
        fs.write_text(path, render_manifest(category, when), errors="surrogateescape")
    except (OSError, UnicodeError) as exc:
        raise TidyError.backup_failed(category.name, exc) from exc
    logger.info("Wrote manifest for %s to %s", category.name, path)
    return path


def read_manifest(path: str, fs: FileSystem = DEFAULT_FS) -> ManifestInfo:
    try:
        text = fs.read_text(path, errors="surrogateescape")
    except (OSError, UnicodeError) as exc:
        raise TidyError.backup_corrupted(path, exc) from exc

    header: dict[str, str] = {}
    paths: list[str] = []
    in_body = False
    for line in text.splitlines():
        if in_body:
            if line:
                paths.append(line)
            continue
        if not line:
            in_body = True
            continue
        if line.startswith("#"):
            continue
        match = _HEADER_RE.match(line)
        if match:
            header[match.group(1)] = match.group(2)

    try:
        return ManifestInfo(
            path=path,
            category=header["Category"],
            timestamp=header["Timestamp"],
            file_count=int(header["Files"]),
            total_size=int(header["Total Size"].split(" ", 1)[0]),
            paths=paths,
        )
    except (KeyError, ValueError) as exc:
        raise TidyError.backup_corrupted(path, exc) from exc


def list_manifests(env: Environment = DEFAULT_ENV, fs: FileSystem = DEFAULT_FS) -> list[ManifestInfo]:
    """Readable manifests, newest first.  Unreadable ones are logged and skipped."""
    manifests: list[ManifestInfo] = []
    for path in fs.glob(os.path.join(manifest_dir(env), f"*{MANIFEST_SUFFIX}")):
        try:
            manifests.append(read_manifest(path, fs))
        except TidyError as exc:
            logger.warning("Skipping manifest %s: %s", path, exc)
    manifests.sort(key=lambda m: (m.timestamp, m.path), reverse=True)
    return manifests
