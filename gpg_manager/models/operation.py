# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  operation.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides the per-call records of gpg_manager.operations: the request that
  describes what the engine is asked to do and the result that describes
  what it did.

"""
import enum

import attr

from gpg_manager.status import StatusReport


class OperationKind(enum.Enum):
    SIGN = "sign"
    VERIFY = "verify"
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class Verdict(enum.Enum):
    """Outcome of a signature verification.

    VALID_TRUSTED: good signature by a fully or ultimately trusted key.
    VALID_UNTRUSTED: good signature by a valid (not expired, not revoked) key
        with undefined, marginal or no trust.
    INVALID: bad signature, unknown, expired or revoked signer, or any
        other failure.

    """

    VALID_TRUSTED = "valid-trusted"
    VALID_UNTRUSTED = "valid-untrusted"
    INVALID = "invalid"

    @property
    def is_valid(self):
        return self is not Verdict.INVALID


@attr.s(frozen=True)
class OperationRequest:
    """Parameters of one engine invocation. The passphrase, if any, is never
    part of a request."""

    kind = attr.ib(validator=attr.validators.instance_of(OperationKind))
    input_path = attr.ib()
    arguments = attr.ib(default=(), converter=tuple)
    output_path = attr.ib(default=None)
    recipient = attr.ib(default=None)
    signer = attr.ib(default=None)
    armored = attr.ib(default=False)
    clear_sign = attr.ib(default=False)
    detached_data_path = attr.ib(default=None)


@attr.s(frozen=True)
class OperationResult:
    """Outcome of a completed engine invocation.

    A result exists only for invocations that ran to completion. Failures
    before the invocation (bad input, unknown keys, no engine) raise instead.

    Attributes:
      request: The OperationRequest that was executed.

      success: The definite verdict of the operation.

      exit_status: The engine's exit status.

      stdout: The engine's standard output without status lines, as bytes.

      diagnostic: The engine's standard error, as str.

      status: The StatusReport parsed from the engine's status lines.

      verdict: The Verdict of a verify operation, None otherwise.

      error: The classified exception if the operation failed or has an
          ambiguous verdict, None otherwise.

      output_path: The path of the produced artifact if the operation
          succeeded, None otherwise.

    """

    request = attr.ib()
    success = attr.ib(validator=attr.validators.instance_of(bool))
    exit_status = attr.ib()
    stdout = attr.ib(default=b"", repr=False)
    diagnostic = attr.ib(default="", repr=False)
    status = attr.ib(default=attr.Factory(StatusReport), repr=False)
    verdict = attr.ib(default=None)
    error = attr.ib(default=None)
    output_path = attr.ib(default=None)

    @property
    def kind(self):
        return self.request.kind

    def __bool__(self):
        return self.success
