"""
Catalog file persistence.

The catalog file is opened read-write and locked exclusively for the whole
lifetime of the in-memory ModelInfo. The lock is the only guard against two
generator invocations interleaving reads, merges and writes on one file.

- Unix/Linux/macOS: fcntl.flock(LOCK_EX | LOCK_NB)
- Windows: msvcrt.locking(LK_NBLCK)

Invariants:
    - A held lock makes load_or_create_model() fail immediately; there is no
      retry and no blocking wait
    - write() truncates, writes at offset 0, flushes and fsyncs, so a failed
      write can't leave a mix of old and new content
    - A failed load closes the handle before raising
    - A new file is created exclusively (O_EXCL); if another run created it
      first, it is loaded instead of overwritten

Example:
    >>> with load_or_create_model("entity-model.json") as model:
    ...     model.validate()
    ...     model.create_entity("Task")
    ...     model.write()
"""

from __future__ import annotations

import json
import logging
import os
import platform
from pathlib import Path
from typing import IO, Optional, Union

from .errors import ModelFileError, ModelFileLockedError
from .model import ModelInfo
from .uidgen import UidGenerator

logger = logging.getLogger(__name__)


class ModelFile:
    """An open, exclusively locked catalog file.

    Attributes:
        path: File path as given by the caller
    """

    def __init__(self, path: str, handle: IO[str]) -> None:
        self.path = path
        self._handle: Optional[IO[str]] = handle

    @classmethod
    def open(cls, path: str, create: bool = False) -> ModelFile:
        """Open (optionally create) the file read-write and lock it.

        With create=True the file must not exist yet.

        Raises:
            FileExistsError: If create=True and the file already exists
            ModelFileLockedError: If another handle holds the lock
            ModelFileError: On any other OS error
        """
        flags = os.O_RDWR | (os.O_CREAT | os.O_EXCL if create else 0)
        try:
            fd = os.open(path, flags, 0o600)
        except FileExistsError:
            raise
        except OSError as e:
            raise ModelFileError(f"can't open file {path}: {e}", path) from e

        handle = os.fdopen(fd, "r+", encoding="utf-8", newline="")
        try:
            _acquire_lock(handle, path)
        except ModelFileError:
            handle.close()
            raise
        logger.debug(f"Locked model file {path}")
        return cls(path, handle)

    def read(self) -> str:
        handle = self._require_open()
        try:
            handle.seek(0)
            return handle.read()
        except OSError as e:
            raise ModelFileError(f"can't read file {self.path}: {e}", self.path) from e

    def write(self, content: str) -> None:
        handle = self._require_open()
        try:
            handle.seek(0)
            handle.truncate(0)
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        except OSError as e:
            raise ModelFileError(f"can't write file {self.path}: {e}", self.path) from e

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            _release_lock(handle)
        finally:
            handle.close()
        logger.debug(f"Released model file {self.path}")

    @property
    def closed(self) -> bool:
        return self._handle is None

    def _require_open(self) -> IO[str]:
        if self._handle is None:
            raise ModelFileError(f"model file {self.path} is closed", self.path)
        return self._handle


def load_or_create_model(
    path: Union[str, Path],
    uid_generator: Optional[UidGenerator] = None,
) -> ModelInfo:
    """Load the catalog at path, or create a fresh one if the file is missing.

    The returned model holds the file open and locked until close().
    The loaded model is not validated; call ModelInfo.validate().

    Args:
        path: Catalog file path
        uid_generator: Uid generator for new identities (random if omitted)

    Raises:
        ModelFileLockedError: If the file is held by another live catalog
        ModelFileError: If the file can't be opened, read, parsed or written
    """
    path = str(path)
    if os.path.exists(path):
        return _load_model(path, uid_generator)
    return _create_model(path, uid_generator)


def _load_model(path: str, uid_generator: Optional[UidGenerator]) -> ModelInfo:
    model_file = ModelFile.open(path)
    try:
        data = json.loads(model_file.read())
        model = ModelInfo.from_dict(data, uid_generator)
    except ModelFileError:
        model_file.close()
        raise
    except (ValueError, TypeError, AttributeError) as e:
        model_file.close()
        raise ModelFileError(f"can't read file {path}: {e}", path) from e

    model.attach(model_file)
    logger.info(f"Loaded model file {path} with {len(model.entities or ())} entities")
    return model


def _create_model(path: str, uid_generator: Optional[UidGenerator]) -> ModelInfo:
    try:
        model_file = ModelFile.open(path, create=True)
    except FileExistsError:
        # created by another run since the existence check
        logger.info(f"Model file {path} appeared concurrently, loading it")
        return _load_model(path, uid_generator)

    model = ModelInfo.create(uid_generator)
    model.attach(model_file)

    # write the initial content right away so the file is known to be writable
    try:
        model.write()
    except ModelFileError:
        model.close()
        raise

    logger.info(f"Created model file {path}")
    return model


def _acquire_lock(handle: IO[str], path: str) -> None:
    if platform.system() == "Windows":
        import msvcrt

        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as e:
            if e.errno in (13, 36):
                raise ModelFileLockedError(path) from e
            raise ModelFileError(f"can't lock file {path}: {e}", path) from e
        return

    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError as e:
        raise ModelFileLockedError(path) from e
    except OSError as e:
        raise ModelFileError(f"can't lock file {path}: {e}", path) from e


def _release_lock(handle: IO[str]) -> None:
    if platform.system() == "Windows":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
