from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from pathlib import PurePosixPath
from typing import Callable

from tidyfs.config.schema import SafetyPolicy
from tidyfs.models.category import Category, FileRecord
from tidyfs.models.enums import RiskLevel
from tidyfs.models.errors import TidyError
from tidyfs.models.events import CancelCheck, CleanComplete, CleanEvent, CleanProgress, ErrorEvent
from tidyfs.services.audit import AuditSink, NullAuditSink
from tidyfs.services.cancel import cancellation_error
from tidyfs.services.env import DEFAULT_ENV, Clock, Environment, system_clock
from tidyfs.services.fs import DEFAULT_FS, FileSystem
from tidyfs.services.manifest import write_manifest

logger = logging.getLogger(__name__)

SHRED_CHUNK = 4096

RandomSource = Callable[[int], bytes]


class Cleaner:
    """Deletes the files of a scanned category under a :class:`SafetyPolicy`.

    Every clean runs the same preflight, dry run or not: the high-risk gate,
    the size ceiling and the protected-path check.  A failed preflight ends
    the stream with one ``ErrorEvent`` before anything is touched.  Real
    cleans write a manifest (an audit record, not a backup), optionally
    overwrite file contents, unlink one file at a time and report per-file
    failures in the final ``CleanComplete``.

    Overwriting is best-effort only.  Copy-on-write, journaled and
    SSD-remapped storage may keep old blocks around.
    """

    def __init__(
        self,
        policy: SafetyPolicy,
        *,
        audit: AuditSink | None = None,
        fs: FileSystem = DEFAULT_FS,
        env: Environment = DEFAULT_ENV,
        clock: Clock = system_clock,
        random_bytes: RandomSource = os.urandom,
    ) -> None:
        self._policy = policy
        self._audit = audit if audit is not None else NullAuditSink()
        self._fs = fs
        self._env = env
        self._clock = clock
        self._random_bytes = random_bytes
        self._protected = [PurePosixPath(p) for p in policy.protected_paths]

    def is_protected(self, path: str) -> bool:
        """True when *path* or its canonical form lies under a protected prefix.

        Comparison is per path component, so ``/var/libexec`` is not under
        ``/var/lib``.  A path that cannot be resolved counts as protected.
        """
        try:
            candidates = {self._fs.absolute(path), self._fs.realpath(path)}
        except (OSError, ValueError):
            return True
        for candidate in candidates:
            pure = PurePosixPath(candidate)
            if any(pure.is_relative_to(p) for p in self._protected):
                return True
        return False

    def preflight(self, category: Category, dry_run: bool) -> TidyError | None:
        max_bytes = self._policy.max_deletion_bytes
        if category.risk is RiskLevel.HIGH and not dry_run and self._policy.safe_mode:
            return TidyError.safety_check_failed(
                "high-risk category cannot be cleaned while safe_mode is enabled",
                category.name,
                category.size,
                max_bytes,
            )
        if category.size > max_bytes:
            return TidyError.safety_check_failed(
                "category size exceeds maximum allowed",
                category.name,
                category.size,
                max_bytes,
            )
        for record in category.files:
            if self.is_protected(record.path):
                return TidyError.path_protected(record.path, self._policy.protected_paths)
        return None

    def clean_category(
        self,
        category: Category,
        dry_run: bool = True,
        cancel_check: CancelCheck | None = None,
    ) -> Iterator[CleanEvent]:
        started = time.monotonic()

        failure = self.preflight(category, dry_run)
        if failure is not None:
            logger.warning("Refusing to clean %s: %s", category.name, failure)
            yield ErrorEvent(failure)
            return

        backup_path = ""
        if not dry_run and self._policy.create_manifest:
            try:
                backup_path = write_manifest(category, self._clock(), env=self._env, fs=self._fs)
            except TidyError as exc:
                if self._policy.safe_mode:
                    logger.error("Aborting clean of %s: %s", category.name, exc)
                    yield ErrorEvent(exc)
                    return
                logger.warning("Cleaning %s without a manifest: %s", category.name, exc)

        total_files = len(category.files)
        deleted = 0
        freed = 0
        errors: list[str] = []

        for record in category.files:
            if cancel_check is not None and cancel_check():
                yield ErrorEvent(cancellation_error(cancel_check, deleted, freed))
                return

            yield CleanProgress(
                files_processed=deleted + len(errors),
                bytes_freed=freed,
                current_file=record.path,
                total_files=total_files,
                total_bytes=category.size,
            )

            if not dry_run:
                try:
                    self._delete(record, category.shred_enabled)
                except TidyError as exc:
                    errors.append(f"{record.path}: {exc}")
                    continue
            deleted += 1
            freed += record.size

        if not dry_run:
            failed = None
            if errors:
                failed = TidyError.clean_failed(category.name, total_files, deleted, len(errors))
                logger.warning("%s", failed)
            self._audit.log_clean_operation(category.name, deleted, freed, failed)

        yield CleanComplete(
            category=category.name,
            files_deleted=deleted,
            bytes_freed=freed,
            duration=time.monotonic() - started,
            backup_created=bool(backup_path),
            backup_path=backup_path,
            errors=errors,
        )

    def _delete(self, record: FileRecord, shred: bool) -> None:
        if self.is_protected(record.path):
            raise TidyError.path_protected(record.path, self._policy.protected_paths)
        try:
            st = self._fs.stat(record.path)
            if st.is_dir:
                raise TidyError.invalid_path(record.path, "is a directory")
            if shred and st.size > 0 and not st.is_symlink:
                self.shred_file(record.path, st.size)
            self._fs.remove(record.path)
        except OSError as exc:
            raise TidyError.from_os_error(exc, record.path) from exc

    def shred_file(self, path: str, size: int) -> None:
        """Overwrite the first *size* bytes of *path* with random data.

        Each pass fills one 4 KiB buffer from the random source, writes it
        repeatedly (the last chunk cut to the remainder), syncs, and rewinds.
        """
        passes = max(1, self._policy.shred_passes)
        try:
            with self._fs.open_binary(path, "r+b") as handle:
                for _ in range(passes):
                    buffer = self._random_bytes(SHRED_CHUNK)
                    remaining = size
                    while remaining > 0:
                        chunk = buffer[: min(SHRED_CHUNK, remaining)]
                        handle.write(chunk)
                        remaining -= len(chunk)
                    self._fs.sync(handle)
                    handle.seek(0)
        except OSError as exc:
            raise TidyError.from_os_error(exc, path) from exc
