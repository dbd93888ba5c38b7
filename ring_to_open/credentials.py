from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .errors import CredentialPersistError

_LOGGER = logging.getLogger(__name__)

_TMP_SUFFIX = ".tmp"


def _tmp_prefix(path: Path) -> str:
    return f".{path.name}."


def _fsync_dir(directory: Path) -> None:
    """Flush the directory entry so the rename survives a power loss."""

    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class CredentialStore:
    """
    Persists the rotating refresh token inside a key-value text file (.env).

    The file is never rewritten in place: the updated text goes to a temporary
    file in the same directory which then replaces the original with
    ``os.replace``. A reader (or a crash) only ever sees the whole old file or
    the whole new one.

    ``current_token`` mirrors what is on disk and only advances after the
    durable write succeeded.
    """

    def __init__(self, path: Union[str, Path], current_token: Optional[str] = None) -> None:
        self.path = Path(path)
        self.current_token = current_token
        self.last_error: Optional[CredentialPersistError] = None

    async def on_rotation(self, old_token: Optional[str], new_token: str) -> bool:
        """Replace *old_token* with *new_token* on disk. Return True on success."""

        if not old_token:
            _LOGGER.debug("Credential issued with no previous value, nothing to rewrite")
            return True
        if old_token == new_token:
            return True

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._rewrite, old_token, new_token)
        except CredentialPersistError as err:
            self.last_error = err
            _LOGGER.error("Failed to persist rotated credential to %s: %s", self.path, err)
            return False

        self.current_token = new_token
        self.last_error = None
        _LOGGER.info("Updated %s with new refresh token", self.path)
        return True

    def _rewrite(self, old_token: str, new_token: str) -> None:
        try:
            original = self.path.read_text(encoding="utf-8")
        except OSError as err:
            raise CredentialPersistError(f"cannot read {self.path}: {err}") from err

        if old_token not in original:
            raise CredentialPersistError(f"previous token not found in {self.path}")

        self._atomic_write(original.replace(old_token, new_token, 1))

    def _atomic_write(self, text: str) -> None:
        directory = self.path.parent
        tmp_name: Optional[str] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(directory),
                prefix=_tmp_prefix(self.path),
                suffix=_TMP_SUFFIX,
                delete=False,
            ) as tmp_file:
                tmp_name = tmp_file.name
                tmp_file.write(text)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())

            shutil.copymode(str(self.path), tmp_name)
            os.replace(tmp_name, str(self.path))
            tmp_name = None
        except OSError as err:
            raise CredentialPersistError(f"cannot write {self.path}: {err}") from err
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        _fsync_dir(directory)

    def recover(self) -> List[Path]:
        """Remove temporary files left behind by an interrupted rotation."""

        removed: List[Path] = []
        directory = self.path.parent
        if not directory.is_dir():
            return removed
        for candidate in directory.glob(f"{_tmp_prefix(self.path)}*{_TMP_SUFFIX}"):
            try:
                candidate.unlink()
            except OSError as err:
                _LOGGER.warning("Unable to remove stale credential file %s: %s", candidate, err)
                continue
            removed.append(candidate)
        if removed:
            _LOGGER.info("Removed %d stale credential temp file(s) next to %s", len(removed), self.path)
        return removed
