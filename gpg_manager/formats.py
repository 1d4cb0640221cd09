# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  formats.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Helpers to validate API inputs before they are turned into engine
  arguments.

"""
from re import fullmatch

from securesystemslib.exceptions import FormatError


def _err(arg, expected):
    return FormatError(f"expected {expected}, got '{arg} ({type(arg)})'")


def _check_bool(arg):
    if not isinstance(arg, bool):
        raise _err(arg, "bool")


def _check_str(arg):
    if not isinstance(arg, str):
        raise _err(arg, "str")


def _check_hex(arg):
    _check_str(arg)
    if fullmatch(r"^[0-9a-fA-F]+$", arg) is None:
        raise _err(arg, "hex string")


def _check_str_list(arg):
    if not isinstance(arg, (list, tuple)):
        raise _err(arg, "list")
    for e in arg:
        _check_str(e)


def _check_identifier(arg):
    """Check key identifier, i.e. a fingerprint, keyid or user id. Identifiers
    must not look like options, they are passed to the engine as argument."""
    _check_str(arg)
    if not arg.strip() or arg.startswith("-") or "\n" in arg:
        raise _err(arg, "key identifier")


def _check_path(arg):
    """Check path argument, which must be a non-empty str or os.PathLike."""
    if hasattr(arg, "__fspath__"):
        arg = arg.__fspath__()
    _check_str(arg)
    if not arg or "\x00" in arg:
        raise _err(arg, "path")


def _check_passphrase(arg):
    if arg is None:
        return
    _check_str(arg)
    if "\n" in arg or "\r" in arg:
        raise FormatError("passphrase must not contain line breaks")


def _check_timeout(arg):
    if arg is None:
        return
    if isinstance(arg, bool) or not isinstance(arg, (int, float)) or arg <= 0:
        raise _err(arg, "positive number of seconds")
