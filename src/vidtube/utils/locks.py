from __future__ import annotations

import os
import time
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import TextIO


class FileLockTimeout(RuntimeError):
    pass


def _try_lock(fp: TextIO) -> bool:
    if os.name == "nt":
        import msvcrt  # type: ignore

        try:
            msvcrt.locking(fp.fileno(), msvcrt.LK_NBLCK, 1)
            return True
        except OSError:
            return False

    import fcntl

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        return True
    except BlockingIOError:
        return False


def _unlock(fp: TextIO) -> None:
    if os.name == "nt":
        import msvcrt  # type: ignore

        with suppress(OSError):
            msvcrt.locking(fp.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    with suppress(OSError):
        fcntl.flock(fp.fileno(), fcntl.LOCK_UN)


@contextmanager
def file_lock(path: Path, *, timeout_s: float = 30.0, poll_interval_s: float = 0.05) -> Iterator[None]:
    """
    Cross-process exclusive lock on `path` (created if missing).

    Serializes SQLite writers that live in different worker processes.
    """
    lock_path = Path(path).resolve()
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + float(timeout_s)
    with lock_path.open("a+", encoding="utf-8") as fp:
        while not _try_lock(fp):
            if time.monotonic() >= deadline:
                raise FileLockTimeout(f"Timed out acquiring file lock: {lock_path.name}")
            time.sleep(float(poll_interval_s))
        try:
            yield
        finally:
            _unlock(fp)
