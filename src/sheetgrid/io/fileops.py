"""Session file plumbing: content hashes, backups, atomic replace and the sidecar lock."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from io import TextIOWrapper
from pathlib import Path

import portalocker

LOCK_SUFFIX = ".sg.lock"
LOCK_POLL_SECONDS = 0.05
_EXCLUSIVE = portalocker.LOCK_EX | portalocker.LOCK_NB


def fingerprint(path: str | Path) -> str:
    """``sha256:<hex>`` digest of the file's bytes."""
    with open(path, "rb") as fh:
        digest = hashlib.file_digest(fh, "sha256")
    return "sha256:" + digest.hexdigest()


def backup(path: str | Path) -> str:
    """Copy a session file to ``<stem>.<timestamp>.bak<suffix>`` beside it."""
    src = Path(path)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    dest = src.with_name(f"{src.stem}.{stamp}.bak{src.suffix}")
    shutil.copy2(src, dest)
    return str(dest)


def atomic_write(target: str | Path, data: bytes) -> None:
    """Replace *target* with *data* so readers never see a partial file.

    The bytes go to a temp file in the same directory, are fsynced, and the
    temp file is renamed over the target.
    """
    target = Path(target)
    with tempfile.NamedTemporaryFile(
        "wb", dir=target.parent, prefix=".sg_tmp_", suffix=target.suffix, delete=False
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, target)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def read_text_safe(path: str | Path) -> str:
    """Read UTF-8 text, dropping a leading BOM."""
    return Path(path).read_text(encoding="utf-8-sig")


def lock_path_for(path: str | Path) -> Path:
    resolved = Path(path).resolve()
    return resolved.with_name(resolved.name + LOCK_SUFFIX)


def _read_holder(lock_path: Path) -> dict[str, str]:
    holder: dict[str, str] = {}
    try:
        text = lock_path.read_text()
    except OSError:
        return holder
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            holder[key.strip()] = value.strip()
    return holder


class SessionLock:
    """Exclusive sidecar lock held across a load, dispatch, save cycle.

    The ``<file>.sg.lock`` sidecar is locked with portalocker; the OS releases
    it if the process dies, so a leftover file on disk is never a stale lock.
    With ``timeout=0`` a held lock fails at once with ``LockException``.
    """

    def __init__(self, session_path: str | Path, *, timeout: float = 0) -> None:
        self.timeout = timeout
        self.lock_path: Path = lock_path_for(session_path)
        self._fh: TextIOWrapper | None = None

    def _acquire(self, fh: TextIOWrapper) -> None:
        give_up = time.monotonic() + self.timeout
        while True:
            try:
                portalocker.lock(fh, _EXCLUSIVE)
                return
            except portalocker.LockException:
                if time.monotonic() >= give_up:
                    raise
                time.sleep(LOCK_POLL_SECONDS)

    def __enter__(self) -> "SessionLock":
        fh = open(self.lock_path, "a+")  # noqa: SIM115
        try:
            self._acquire(fh)
        except portalocker.LockException:
            fh.close()
            raise
        fh.seek(0)
        fh.truncate()
        fh.write(f"pid={os.getpid()}\ntime={datetime.now(timezone.utc).isoformat()}\n")
        fh.flush()
        self._fh = fh
        return self

    def __exit__(self, *exc: object) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            portalocker.unlock(fh)
        finally:
            fh.close()


def check_lock(path: str | Path) -> dict:
    """Probe the sidecar without blocking and report who holds it, if anyone."""
    lock_path = lock_path_for(path)
    status: dict = {"exists": Path(path).exists(), "locked": False, "lock_file": str(lock_path)}
    if not lock_path.exists():
        return status
    try:
        with open(lock_path, "a+") as probe:
            portalocker.lock(probe, _EXCLUSIVE)
            portalocker.unlock(probe)
    except portalocker.LockException:
        status["locked"] = True
        status["holder"] = _read_holder(lock_path)
    except OSError:
        status["check_error"] = True
    return status
