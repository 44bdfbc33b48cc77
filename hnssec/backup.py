### backup.py
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import zipfile

from hnssec.config import BACKUP_DIR
from hnssec.exceptions import ArchiveError

logger = logging.getLogger(__name__)

# A single worker keeps archive writes in submission order
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hnssec-backup")


def backup_filename(label: str, now: Optional[datetime] = None) -> str:
    """``{label}_backup_{YYYY.MM.DD}_{HHMMSS}``, local time."""
    now = now or datetime.now()
    return f"{label}_backup_{now:%Y.%m.%d}_{now:%H%M%S}"


def write_archive(source_dir: Path, archive_path: Path) -> Path:
    """Zip the contents of ``source_dir`` (no enclosing folder) at maximum compression."""
    try:
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for path in sorted(source_dir.rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(source_dir).as_posix())
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError("archive_failed", f"Cannot write {archive_path}: {e}")
    return archive_path


def _report(label: str):
    def done(future: Future):
        error = future.exception()
        if error is not None:
            logger.error(f"[{label}] Export failed: {error}")
        else:
            logger.info(f"[{label}] Export finished: {future.result().name}")
    return done


def backup(source_dir: Path, label: str, backup_dir: Path = BACKUP_DIR) -> Optional[Future]:
    """
    Archive a domain's output directory into ``backup_dir``.

    Returns None when ``source_dir`` does not exist or ``backup_dir`` cannot be
    created. Otherwise the archive is written in the background and the
    returned future resolves to its path; callers that need the file on disk
    wait on it.
    """
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"[{label}] Cannot create backup folder {backup_dir}: {e}")
        return None

    if not source_dir.exists():
        logger.error(f"[{label}] folder does not exist: {source_dir}")
        return None

    archive_path = backup_dir / f"{backup_filename(label)}.zip"
    future = _executor.submit(write_archive, source_dir, archive_path)
    future.add_done_callback(_report(label))
    return future
