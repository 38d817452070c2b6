"""File copy capabilities used for bundle and hook writes."""
import asyncio
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Protocol, Sequence, Tuple

from conda_ca_sync.errors import BundleCopyError
from conda_ca_sync.logging import get_logger

logger = get_logger(__name__)


class PrivilegedCopier(Protocol):
    """Copies ``src`` over ``dst``, escalating privileges if it must."""

    async def copy(self, src: Path, dst: Path) -> None: ...

    async def make_dirs(self, path: Path) -> None: ...


def atomic_copy(src: Path, dst: Path) -> None:
    """Copy into a temp file beside ``dst`` and rename it into place."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dst.name}.", dir=dst.parent)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copyfile(src, tmp)
        shutil.copymode(src, tmp)
        os.replace(tmp, dst)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def make_dirs(path: Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


async def async_subprocess_run(*args: str) -> Tuple[int, str, str]:
    """Run a command asynchronously and return its exit code, stdout, and stderr."""
    proc = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await proc.communicate()
    return proc.returncode, stdout.decode(), stderr.decode()


class DirectCopier:
    """Copies as the invoking user."""

    async def copy(self, src: Path, dst: Path) -> None:
        src, dst = Path(src), Path(dst)
        try:
            await asyncio.to_thread(atomic_copy, src, dst)
        except OSError as e:
            raise BundleCopyError(src, dst, e.strerror or str(e)) from e

        logger.debug({"event": "file_copied", "src": str(src), "dst": str(dst)})

    async def make_dirs(self, path: Path) -> None:
        path = Path(path)
        try:
            make_dirs(path)
        except OSError as e:
            raise BundleCopyError(path, path, e.strerror or str(e)) from e


class SudoCopier(DirectCopier):
    """Falls back to ``sudo -n`` when the direct copy is not permitted."""

    def __init__(self, sudo: Sequence[str] = ("sudo", "-n")):
        self.sudo = tuple(sudo)

    async def copy(self, src: Path, dst: Path) -> None:
        src, dst = Path(src), Path(dst)
        try:
            await super().copy(src, dst)
            return
        except BundleCopyError as e:
            if not isinstance(e.__cause__, PermissionError):
                raise

        logger.debug({"event": "copy_escalated", "src": str(src), "dst": str(dst)})

        tmp = dst.parent / f".{dst.name}.{uuid.uuid4().hex}"
        for cmd in (
            ("cp", str(src), str(tmp)),
            ("mv", "-f", str(tmp), str(dst)),
        ):
            try:
                returncode, _, stderr = await async_subprocess_run(*self.sudo, *cmd)
            except OSError as e:
                raise BundleCopyError(src, dst, f"cannot run {self.sudo[0]}: {e}") from e
            if returncode != 0:
                await async_subprocess_run(*self.sudo, "rm", "-f", str(tmp))
                raise BundleCopyError(src, dst, stderr.strip() or f"exit code {returncode}")

        logger.debug({"event": "file_copied", "src": str(src), "dst": str(dst), "sudo": True})

    async def make_dirs(self, path: Path) -> None:
        path = Path(path)
        try:
            await super().make_dirs(path)
            return
        except BundleCopyError as e:
            if not isinstance(e.__cause__, PermissionError):
                raise

        logger.debug({"event": "mkdir_escalated", "path": str(path)})
        try:
            returncode, _, stderr = await async_subprocess_run(
                *self.sudo, "mkdir", "-p", str(path)
            )
        except OSError as e:
            raise BundleCopyError(path, path, f"cannot run {self.sudo[0]}: {e}") from e
        if returncode != 0:
            raise BundleCopyError(path, path, stderr.strip() or f"exit code {returncode}")


def copier_for(use_sudo: bool) -> PrivilegedCopier:
    return SudoCopier() if use_sudo else DirectCopier()
