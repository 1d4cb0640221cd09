# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  util.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  File helpers for decrypted and otherwise engine-produced artifacts:

  - `secure_delete` overwrites a file before unlinking it,
  - `plaintext_tmp_dir` selects where temporary plaintext is materialized,
  - `staged_output` lets the engine write to a temporary file that is only
    moved to its target if the operation succeeds.

"""
import contextlib
import logging
import os
import tempfile
import time

import gpg_manager.settings
from gpg_manager.exceptions import InvalidInputError
from gpg_manager.formats import _check_path

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)

SHM_DIR = "/dev/shm"  # nosec
CHUNK_SIZE = 64 * 1024


def _overwrite(fd, size, pattern):
    os.lseek(fd, 0, os.SEEK_SET)
    remaining = size
    while remaining > 0:
        length = min(CHUNK_SIZE, remaining)
        data = os.urandom(length) if pattern is None else pattern * length
        remaining -= os.write(fd, data)

    os.fsync(fd)


def secure_delete(path, passes=None):
    """
    <Purpose>
      Removes the file at the passed path such that its content cannot be
      trivially recovered: the file is overwritten in place (zeros, random
      bytes, ..., zeros last), flushed to disk, truncated, renamed to a random
      name and unlinked.

      NOTE: On copy-on-write or journaling file systems and on flash storage
      overwriting in place gives no guarantee that old blocks are gone. Use a
      memory backed directory (see `plaintext_tmp_dir`) for plaintext.

    <Arguments>
      path:
              Path to the file to remove.

      passes: (optional)
              Number of overwrite passes, defaults to
              gpg_manager.settings.SECURE_DELETE_PASSES.

    <Exceptions>
      OSError:
              If the file exists but cannot be overwritten or removed.

    <Side Effects>
      Overwrites and removes the file. A missing file is not an error.

    <Returns>
      True if a file was removed, False if there was none.

    """
    _check_path(path)
    if passes is None:
        passes = int(gpg_manager.settings.SECURE_DELETE_PASSES)

    path = os.fspath(path)
    if not os.path.lexists(path):
        return False

    if os.path.isfile(path) and not os.path.islink(path):
        size = os.path.getsize(path)
        fd = os.open(path, os.O_WRONLY)
        try:
            for i in range(max(passes, 1)):
                last = i == max(passes, 1) - 1
                pattern = b"\x00" if (i % 2 == 0 or last) else None
                _overwrite(fd, size, pattern)

            os.ftruncate(fd, 0)
            os.fsync(fd)

        finally:
            os.close(fd)

        # Rename to drop the original name from the directory entry
        scrambled = os.path.join(
            os.path.dirname(path), "." + os.urandom(8).hex()
        )
        try:
            os.replace(path, scrambled)
            path = scrambled

        except OSError:  # pragma: no cover
            LOG.debug(f"Could not rename '{path}' before removal")

    try:
        os.remove(path)

    except PermissionError:  # pragma: no cover
        # Retry once, e.g. if a virus scanner holds the file on Windows
        time.sleep(0.01)
        os.remove(path)

    return True


def plaintext_tmp_dir():
    """Returns the directory for temporary plaintext, i.e. the configured
    PLAINTEXT_TMP_DIR, or /dev/shm if it is a writable directory, or the
    system's default temp dir."""
    configured = gpg_manager.settings.PLAINTEXT_TMP_DIR
    if configured:
        return os.fspath(configured)

    if os.path.isdir(SHM_DIR) and os.access(SHM_DIR, os.W_OK | os.X_OK):
        return SHM_DIR

    return tempfile.gettempdir()


def make_private_tmp_file(directory=None, suffix=""):
    """Creates an empty file readable by the owner only, and returns its
    path."""
    if directory is None:
        directory = plaintext_tmp_dir()

    fd, path = tempfile.mkstemp(
        prefix=".gpg_manager-", suffix=suffix, dir=directory
    )
    os.close(fd)
    os.chmod(path, 0o600)
    return path


class StagedOutput:
    """Temporary file next to an output target. See `staged_output`."""

    def __init__(self, target):
        self.target = os.fspath(target)
        if os.path.isdir(self.target):
            raise InvalidInputError(
                f"Cannot write output '{self.target}': is a directory"
            )

        directory = os.path.dirname(os.path.abspath(self.target))
        try:
            self.path = make_private_tmp_file(directory, suffix=".part")

        except OSError as e:
            raise InvalidInputError(
                f"Cannot write output '{self.target}': {e}"
            ) from e

        self.committed = False

    def commit(self):
        """Moves the staged file to its target, replacing an existing file."""
        try:
            os.replace(self.path, self.target)

        except OSError as e:
            raise InvalidInputError(
                f"Cannot write output '{self.target}': {e}"
            ) from e

        self.committed = True


@contextlib.contextmanager
def staged_output(target):
    """
    <Purpose>
      Context manager that yields a StagedOutput, i.e. a temporary file in
      the directory of the passed target, for the engine to write to. If the
      caller commits it, the file replaces the target. Otherwise, on any exit
      path, the temporary file is securely deleted, so that no partial output
      is left behind and an existing target remains untouched.

    <Arguments>
      target:
              Final path of the output.

    <Exceptions>
      gpg_manager.exceptions.InvalidInputError:
              If the target directory is not writable or the
              target is a directory.

    <Side Effects>
      Creates a temporary file in the target directory.

    """
    _check_path(target)
    staged = StagedOutput(target)
    try:
        yield staged

    finally:
        if not staged.committed:
            secure_delete(staged.path)
