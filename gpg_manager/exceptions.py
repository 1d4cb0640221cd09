# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  exceptions.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Define the failure taxonomy of gpg_manager. Following the practice from
  securesystemslib the names chosen for exception classes end in 'Error'.

  Engine start failures, malformed input and failures reported by the engine
  are distinct kinds and are never conflated.

"""
from securesystemslib.exceptions import Error


class EngineUnavailableError(Error):
    """Indicates that the engine executable could not be found or started."""


class EngineTimeoutError(EngineUnavailableError):
    """Indicates that the engine was killed after exceeding its timeout."""

    def __init__(self, arguments, timeout):
        super().__init__(
            f"Engine did not finish within {timeout} seconds: {arguments!r}"
        )
        self.arguments = arguments
        self.timeout = timeout


class ParseError(Error):
    """Indicates that a key listing does not match the colon format."""


class InvalidInputError(Error):
    """Indicates a missing or unreadable input path. Raised before the engine
    is invoked."""


class KeyNotFoundError(Error):
    """Indicates that an identifier does not resolve to a known key."""

    def __init__(self, identifier, message=None):
        super().__init__(message or f"No key found for '{identifier}'")
        self.identifier = identifier


class UnknownRecipientError(KeyNotFoundError):
    """Indicates that an encryption recipient is not in the key store."""

    def __init__(self, identifier):
        super().__init__(
            identifier, f"Recipient '{identifier}' is not a known public key"
        )


class UnknownSignerError(KeyNotFoundError):
    """Indicates that a signing key is not in the secret key store."""

    def __init__(self, identifier):
        super().__init__(
            identifier, f"Signer '{identifier}' is not a known secret key"
        )


class CryptoFailureError(Error):
    """Indicates that the engine ran but reported a cryptographic failure,
    e.g. a bad signature, a wrong passphrase or a failed decryption."""

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result


class AmbiguousVerdictError(Error):
    """Indicates a conditional engine verdict, e.g. a good signature made by
    a key that is not trusted."""

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result
