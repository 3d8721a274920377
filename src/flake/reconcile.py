"""Mirrors the home directory into the store's working tree.

Only files already present in the store are considered: each one is
overwritten with its home-directory counterpart, or deleted when that
counterpart no longer exists. New files in the home directory are never
picked up here; they have to be added to the store first.
"""

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from .constants import APP_NAME, VCS_PREFIX
from .errors import FileReconcileWarning

logger = logging.getLogger(APP_NAME)


@dataclass
class ReconcileReport:
    """Per-file outcome of one reconcile pass.

    Attributes:
        copied (list[Path]): Store paths refreshed from the home directory.
        deleted (list[Path]): Store paths removed because home has no such file.
        warnings (list[FileReconcileWarning]): Files that could not be synced.
    """

    copied: list[Path] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)
    warnings: list[FileReconcileWarning] = field(default_factory=list)


def is_vcs_entry(name: str) -> bool:
    return name.startswith(VCS_PREFIX)


def tracked_files(store_root: Path, report: ReconcileReport) -> Iterator[Path]:
    """Yields regular files under `store_root`, relative to it.

    Entries whose name starts with the VCS prefix are skipped at every depth,
    along with everything beneath them. Symlinks are not regular files. Entries
    that cannot be inspected are recorded in `report` and skipped.
    """

    def on_error(error: OSError) -> None:
        path = Path(error.filename) if error.filename else store_root
        try:
            relative = path.relative_to(store_root)
        except ValueError:
            relative = path
        report.warnings.append(FileReconcileWarning(relative, error))

    for dirpath, dirnames, filenames in os.walk(store_root, onerror=on_error):
        dirnames[:] = sorted(d for d in dirnames if not is_vcs_entry(d))
        current = Path(dirpath)
        for name in sorted(filenames):
            if is_vcs_entry(name):
                continue
            full = current / name
            relative = full.relative_to(store_root)
            try:
                mode = full.lstat().st_mode
            except OSError as e:
                report.warnings.append(FileReconcileWarning(relative, e))
                continue
            if stat.S_ISREG(mode):
                yield relative


def sync_path(home_root: Path, store_root: Path, relative: Path) -> bool:
    """Mirrors one tracked file. Returns True if copied, False if deleted.

    Raises:
        OSError: If the copy or delete fails.
    """
    source = home_root / relative
    target = store_root / relative
    if source.exists():
        shutil.copy(source, target)
        return True
    target.unlink()
    return False


def reconcile(home_root: Path, store_root: Path) -> ReconcileReport:
    """Makes every tracked file in `store_root` match `home_root`.

    Failures on individual files are logged as warnings and recorded in the
    report; they never abort the pass.

    Args:
        home_root (Path): The authoritative directory.
        store_root (Path): The store's working tree.

    Returns:
        ReconcileReport: What was copied, deleted, and skipped.
    """
    report = ReconcileReport()

    for relative in tracked_files(store_root, report):
        try:
            if sync_path(home_root, store_root, relative):
                report.copied.append(relative)
            else:
                report.deleted.append(relative)
                logger.info(f"Removed {relative}: no longer in {home_root}")
        except OSError as e:
            report.warnings.append(FileReconcileWarning(relative, e))

    for warning in report.warnings:
        logger.warning(str(warning))

    logger.debug(
        f"Reconciled {len(report.copied)} copied, "
        f"{len(report.deleted)} deleted, {len(report.warnings)} skipped"
    )
    return report
