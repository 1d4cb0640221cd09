# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  process.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provide the process boundary to the engine, i.e. the only place in
  gpg_manager that uses Python's subprocess module:

  - `EngineConfig` holds the explicitly configured executable, keyring
    directory and default timeout,
  - `discover_executable` looks up the engine on the PATH,
  - `ProcessInvoker.run` executes the engine and captures its exit status,
    standard output and standard error in a `ProcessResult`.

  Nothing in here interprets engine output and nothing is retried.

"""
import logging
import re
import subprocess  # nosec

import attr

import gpg_manager.settings
from gpg_manager.exceptions import EngineTimeoutError, EngineUnavailableError
from gpg_manager.formats import (
    _check_path,
    _check_str,
    _check_str_list,
    _check_timeout,
)

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)

# Engine executables tried in order if none is configured
GPG_CANDIDATES = ("gpg2", "gpg")
FULLY_SUPPORTED_MIN_VERSION = "2.1.0"

# Timeout for version probes during executable discovery
PROBE_TIMEOUT = 10

PIPE = subprocess.PIPE


def discover_executable(candidates=GPG_CANDIDATES):
    """
    <Purpose>
      Returns the first of the passed executable names that can be started
      with `--version`. By default we assume that gpg2 exists, otherwise we
      assume gpg exists.

    <Arguments>
      candidates: (optional)
              Executable names or paths in order of preference.

    <Exceptions>
      gpg_manager.exceptions.EngineUnavailableError:
              If none of the candidates can be started.

    <Side Effects>
      Executes each candidate in a subprocess until one starts.

    <Returns>
      The name or path of the engine executable.

    """
    for candidate in candidates:
        try:
            subprocess.run(  # nosec
                [candidate, "--version"],
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=PROBE_TIMEOUT,
            )

        except (OSError, subprocess.TimeoutExpired):
            LOG.debug(f"Engine candidate '{candidate}' is not available")
            continue

        LOG.debug(f"Using engine executable '{candidate}'")
        return candidate

    raise EngineUnavailableError(
        "None of the engine executables {} could be started".format(
            ", ".join(candidates)
        )
    )


@attr.s(frozen=True)
class EngineConfig:
    """Explicit configuration of the engine invocation.

    Attributes:
      executable_path: Name or path of the engine executable. If None, the
          executable is discovered on first use.

      default_timeout: Seconds after which an engine invocation is killed.

      homedir: Keyring directory passed as --homedir. If None, the engine's
          default keyring is used.

    """

    executable_path = attr.ib(default=None)
    default_timeout = attr.ib(default=30)
    homedir = attr.ib(default=None)

    @executable_path.validator
    def _validate_executable_path(self, attribute, value):
        if value is not None:
            _check_path(value)

    @default_timeout.validator
    def _validate_default_timeout(self, attribute, value):
        _check_timeout(value)

    @homedir.validator
    def _validate_homedir(self, attribute, value):
        if value is not None:
            _check_path(value)

    @classmethod
    def from_settings(cls):
        """Creates an ``EngineConfig`` from the current values in
        `gpg_manager.settings`."""
        return cls(
            executable_path=gpg_manager.settings.GPG_COMMAND,
            default_timeout=gpg_manager.settings.SUBPROCESS_TIMEOUT,
            homedir=gpg_manager.settings.GPG_HOMEDIR,
        )


@attr.s(frozen=True)
class ProcessResult:
    """Exit status and complete standard streams (bytes) of a finished
    engine process."""

    exit_status = attr.ib()
    stdout = attr.ib(default=b"", repr=False)
    stderr = attr.ib(default=b"", repr=False)

    @property
    def ok(self):
        return self.exit_status == 0

    def stdout_text(self):
        return self.stdout.decode("utf-8", errors="replace")

    def stderr_text(self):
        return self.stderr.decode("utf-8", errors="replace")


class ProcessInvoker:
    """Runs the engine as subprocess with the arguments, optional standard
    input and timeout of an invocation.

    Arguments:
      config: An ``EngineConfig``. If not passed, it is created from
          `gpg_manager.settings`.

    """

    def __init__(self, config=None):
        self.config = config if config is not None else EngineConfig.from_settings()
        self._executable = self.config.executable_path

    @property
    def executable(self):
        """The engine executable, discovered on first access if not
        configured.

        Raises:
          gpg_manager.exceptions.EngineUnavailableError: No engine found.

        """
        if self._executable is None:
            self._executable = discover_executable()

        return self._executable

    def build_command(self, arguments):
        """Returns the complete argv for the passed engine arguments."""
        _check_str_list(arguments)

        command = [self.executable]
        if self.config.homedir:
            command += ["--homedir", str(self.config.homedir).replace("\\", "/")]

        return command + list(arguments)

    def run(self, arguments, stdin_payload=None, timeout=None):
        """
        <Purpose>
          Executes the engine with the passed arguments, feeds the optional
          standard input payload and waits for the process to terminate.
          Standard output and standard error are captured completely.

          A non-zero exit status is not an error at this level, it is
          returned to the caller for interpretation.

        <Arguments>
          arguments:
                  List of engine arguments, not including the executable and
                  the --homedir option.

          stdin_payload: (optional)
                  Bytes or str passed to the engine's standard input. A str is
                  encoded as UTF-8. If None, standard input is closed.

          timeout: (optional)
                  Seconds after which the engine is killed. Defaults to the
                  configured default timeout.

        <Exceptions>
          securesystemslib.exceptions.FormatError:
                  If the arguments are not a list of str.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine is not present or non-executable.

          gpg_manager.exceptions.EngineTimeoutError:
                  If the engine does not terminate in time. The process is
                  killed and waited for before the error is raised.

        <Side Effects>
          The side effects of executing the engine in this environment.

        <Returns>
          A ProcessResult.

        """
        _check_timeout(timeout)
        if timeout is None:
            timeout = self.config.default_timeout

        if isinstance(stdin_payload, str):
            stdin_payload = stdin_payload.encode("utf-8")

        command = self.build_command(arguments)
        # NOTE: The command is logged without stdin, which may hold a passphrase
        LOG.debug(f"Running engine: {command!r}")

        try:
            process = subprocess.run(  # nosec
                command,
                input=stdin_payload,
                stdin=None if stdin_payload is not None else subprocess.DEVNULL,
                stdout=PIPE,
                stderr=PIPE,
                check=False,
                timeout=timeout,
            )

        except subprocess.TimeoutExpired as e:
            # `subprocess.run` has already killed and reaped the child
            raise EngineTimeoutError(arguments, timeout) from e

        except OSError as e:
            raise EngineUnavailableError(
                f"Engine '{command[0]}' could not be started: {e}"
            ) from e

        LOG.debug(f"Engine exited with status {process.returncode}")
        return ProcessResult(
            exit_status=process.returncode,
            stdout=process.stdout or b"",
            stderr=process.stderr or b"",
        )

    def version(self):
        """
        <Purpose>
          Uses `--version` to get the version info of the engine and extracts
          and returns the version number.

        <Exceptions>
          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or reports no version.

        <Returns>
          Version number string, e.g. "2.2.27"

        """
        result = self.run(["--version"])
        match = re.search(r"(\d+\.\d+\.\d+)", result.stdout_text())
        if not result.ok or not match:
            raise EngineUnavailableError(
                f"Could not determine engine version: {result.stderr_text()}"
            )

        return match.group(1)

    def is_version_fully_supported(self):
        """Returns True if the engine version is greater-equal
        FULLY_SUPPORTED_MIN_VERSION, False otherwise."""
        installed = _version_tuple(self.version())
        return installed >= _version_tuple(FULLY_SUPPORTED_MIN_VERSION)


def _version_tuple(version_string):
    _check_str(version_string)
    return tuple(int(part) for part in version_string.split("."))
