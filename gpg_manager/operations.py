# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  operations.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides CryptoOperations, which orchestrates sign, verify, encrypt and
  decrypt requests to the engine:

    - validate inputs and resolve keys in the KeyStore, before the engine is
      invoked,
    - build the engine arguments,
    - invoke the engine through the ProcessInvoker,
    - classify the outcome using exit status and status lines,
    - make sure no partial output and no temporary plaintext is left behind.

  Every call is independent, no state is kept between calls and nothing is
  retried.

"""
import logging
import os
import weakref

import gpg_manager.settings
from gpg_manager.exceptions import (
    AmbiguousVerdictError,
    CryptoFailureError,
    InvalidInputError,
    UnknownRecipientError,
    UnknownSignerError,
)
from gpg_manager.formats import (
    _check_bool,
    _check_identifier,
    _check_passphrase,
    _check_path,
)
from gpg_manager.models.operation import (
    OperationKind,
    OperationRequest,
    OperationResult,
    Verdict,
)
from gpg_manager.status import (
    BAD_SIGNATURE_KEYWORDS,
    TRUSTED_KEYWORDS,
    UNTRUSTED_KEYWORDS,
    parse_status,
)
from gpg_manager.util import make_private_tmp_file, secure_delete, staged_output

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)

# Status lines go to stdout, all data goes to files passed with --output
BASE_ARGS = ["--batch", "--yes", "--no-tty", "--status-fd", "1"]

CLEARSIGN_SUFFIX = ".asc"
DETACHED_SUFFIX = ".sig"
ARMORED_SUFFIX = ".asc"

# Human readable explanations for status keywords that report a failure
FAILURE_REASONS = {
    "BAD_PASSPHRASE": "bad passphrase",
    "MISSING_PASSPHRASE": "no passphrase given",
    "NO_SECKEY": "secret key not available",
    "NO_PUBKEY": "public key not available",
    "INV_SGNR": "unusable signing key",
    "INV_RECP": "unusable recipient key",
    "KEYEXPIRED": "key expired",
    "KEYREVOKED": "key revoked",
    "BADSIG": "bad signature",
    "ERRSIG": "signature could not be checked",
    "EXPSIG": "signature expired",
    "EXPKEYSIG": "signature made by expired key",
    "REVKEYSIG": "signature made by revoked key",
    "BADMDC": "integrity check failed",
    "DECRYPTION_FAILED": "decryption failed",
    "NODATA": "no OpenPGP data found",
    "FAILURE": "operation failed",
}


def _check_input(path):
    """Returns the passed path as str if it is an existing, readable file.
    Raises InvalidInputError otherwise."""
    _check_path(path)
    path = os.fspath(path)
    if not os.path.isfile(path):
        raise InvalidInputError(f"'{path}' does not exist or is not a file")

    if not os.access(path, os.R_OK):
        raise InvalidInputError(f"'{path}' is not readable")

    return path


def _passphrase_args(passphrase):
    """Returns engine arguments and standard input to pass a passphrase."""
    _check_passphrase(passphrase)
    if passphrase is None:
        return [], None

    return (
        ["--pinentry-mode", "loopback", "--passphrase-fd", "0"],
        passphrase.encode("utf-8") + b"\n",
    )


def _describe_failure(kind, process_result, status):
    reasons = []
    for line in status:
        reason = FAILURE_REASONS.get(line.keyword)
        if reason and reason not in reasons:
            reasons.append(reason)

    message = "{} failed with exit status {}".format(
        kind.value.capitalize(), process_result.exit_status
    )
    if reasons:
        message += ": " + ", ".join(reasons)

    stderr = process_result.stderr_text().strip()
    if stderr:
        message += f"\n{stderr}"

    return message


class PlaintextHandle:
    """Read-only binary handle to plaintext that was decrypted into a
    temporary file.

    The temporary file is securely deleted (see `gpg_manager.util.
    secure_delete`) when the handle is closed, when a `with` block using it
    is left, no matter how, when the handle is garbage collected without
    being closed, or at the latest when the interpreter exits.

    Attributes:
      path: The path of the temporary plaintext file.

      result: The successful decrypt OperationResult.

    """

    def __init__(self, path, result):
        self.path = path
        self.result = result
        self._file = open(path, "rb")  # pylint: disable=consider-using-with
        self._finalizer = weakref.finalize(self, _release, self._file, path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __iter__(self):
        self._check_open()
        return iter(self._file)

    def _check_open(self):
        if self.closed:
            raise ValueError("I/O operation on closed plaintext handle")

    @property
    def closed(self):
        return not self._finalizer.alive

    def read(self, size=-1):
        self._check_open()
        return self._file.read(size)

    def readline(self, size=-1):
        self._check_open()
        return self._file.readline(size)

    def readlines(self):
        self._check_open()
        return self._file.readlines()

    def seek(self, offset, whence=os.SEEK_SET):
        self._check_open()
        return self._file.seek(offset, whence)

    def close(self):
        """Closes the handle and securely deletes the plaintext file. Calling
        it more than once has no effect."""
        self._finalizer()


def _release(file_obj, path):
    file_obj.close()
    secure_delete(path)
    LOG.debug(f"Removed temporary plaintext '{path}'")


class CryptoOperations:
    """Builds, runs and classifies the engine invocations for sign, verify,
    encrypt and decrypt.

    Arguments:
      invoker: The ``ProcessInvoker`` used to run the engine.

      keystore: The ``KeyStore`` used to resolve signers and recipients.

      default_signer: (optional) Identifier of the key used by `sign` if no
          signer is passed. Defaults to gpg_manager.settings.DEFAULT_SIGNER.

      trust_model: (optional) Passed as --trust-model for encryption.
          Defaults to gpg_manager.settings.TRUST_MODEL.

    """

    def __init__(self, invoker, keystore, default_signer=None, trust_model=None):
        self._invoker = invoker
        self._keystore = keystore
        self.default_signer = (
            default_signer
            if default_signer is not None
            else gpg_manager.settings.DEFAULT_SIGNER
        )
        self.trust_model = (
            trust_model
            if trust_model is not None
            else gpg_manager.settings.TRUST_MODEL
        )

    def _invoke(self, request, stdin_payload=None):
        process_result = self._invoker.run(
            list(request.arguments), stdin_payload=stdin_payload
        )
        status = parse_status(process_result.stdout)
        LOG.debug(
            "{} status: {}".format(request.kind.value, ", ".join(status.keywords()))
        )
        return process_result, status

    @staticmethod
    def _result(
        request,
        process_result,
        status,
        success,
        verdict=None,
        output_path=None,
        error=None,
    ):
        if not success and error is None:
            error = CryptoFailureError(
                _describe_failure(request.kind, process_result, status)
            )

        result = OperationResult(
            request=request,
            success=success,
            exit_status=process_result.exit_status,
            stdout=b"\n".join(
                line
                for line in process_result.stdout.splitlines()
                if not line.startswith(b"[GNUPG:] ")
            ),
            diagnostic=process_result.stderr_text(),
            status=status,
            verdict=verdict,
            error=error,
            output_path=output_path if success else None,
        )
        if error is not None:
            error.result = result
            LOG.info(str(error))

        return result

    def select_signer(self, signer=None):
        """
        <Purpose>
          Determines the signing key. The first of the following is used:

            1. the passed signer,
            2. the default signer of this instance,
            3. the first usable signing key in the secret key snapshot, or
               the first secret key if none is usable,
            4. the engine's default key, if the key store holds no secret
               keys (e.g. because listing keys failed).

          A signer from 1. or 2. must be in the secret key snapshot, unless
          the snapshot is empty.

        <Arguments>
          signer: (optional)
                  Fingerprint, keyid, e-mail address or user id.

        <Exceptions>
          gpg_manager.exceptions.UnknownSignerError:
                  If the signer is not a known secret key.

        <Returns>
          The fingerprint (or, if unverifiable, the identifier) of the
          signing key, or None to let the engine decide.

        """
        if signer is None:
            signer = self.default_signer

        secret_keys = self._keystore.secret_keys()

        if signer is not None:
            _check_identifier(signer)
            if not secret_keys:
                LOG.warning(
                    f"No secret keys known, passing signer '{signer}' unverified"
                )
                return signer

            record = self._keystore.find(signer, secret=True)
            if record is None:
                raise UnknownSignerError(signer)

            return record.keyid

        if not secret_keys:
            LOG.warning("No secret keys known, the engine selects the signing key")
            return None

        for record in secret_keys:
            if record.is_usable and "s" in record.capabilities.lower():
                return record.keyid

        return secret_keys[0].keyid

    def sign(
        self,
        file_path,
        clear_sign=False,
        signer=None,
        armored=False,
        passphrase=None,
    ):
        """
        <Purpose>
          Signs the passed file with the engine.

          In clear-sign mode the signature is embedded with the readable
          content in a new file "<file_path>.asc". Otherwise a detached
          signature is written to "<file_path>.sig", or "<file_path>.asc" if
          armored. The input file is never modified.

        <Arguments>
          file_path:
                  Path to an existing, readable file.

          clear_sign: (optional)
                  Create a clear-signed document instead of a detached
                  signature.

          signer: (optional)
                  Signing key, see `select_signer`.

          armored: (optional)
                  ASCII armor a detached signature. Clear-signed documents
                  are always armored.

          passphrase: (optional)
                  Passphrase of the signing key, passed to the engine via
                  standard input. If None, the engine's agent is asked.

        <Exceptions>
          gpg_manager.exceptions.InvalidInputError:
                  If file_path is not an existing, readable file.

          gpg_manager.exceptions.UnknownSignerError:
                  If the signer is not a known secret key.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

          securesystemslib.exceptions.FormatError:
                  If an argument is malformed.

        <Side Effects>
          Creates or replaces the signature file if signing succeeds.

        <Returns>
          An OperationResult. success is True only if the engine exited with
          status 0, reported SIG_CREATED and the signature file exists.

        """
        _check_bool(clear_sign)
        _check_bool(armored)
        file_path = _check_input(file_path)
        signer_keyid = self.select_signer(signer)
        passphrase_args, stdin_payload = _passphrase_args(passphrase)

        if clear_sign:
            output_path = file_path + CLEARSIGN_SUFFIX
            mode_args = ["--clearsign"]

        else:
            output_path = file_path + (ARMORED_SUFFIX if armored else DETACHED_SUFFIX)
            mode_args = ["--detach-sign"] + (["--armor"] if armored else [])

        signer_args = ["--local-user", signer_keyid] if signer_keyid else []

        with staged_output(output_path) as staged:
            request = OperationRequest(
                kind=OperationKind.SIGN,
                input_path=file_path,
                output_path=output_path,
                signer=signer_keyid,
                armored=armored or clear_sign,
                clear_sign=clear_sign,
                arguments=BASE_ARGS
                + passphrase_args
                + signer_args
                + ["--output", staged.path]
                + mode_args
                + ["--", file_path],
            )
            process_result, status = self._invoke(request, stdin_payload)

            success = (
                process_result.ok
                and "SIG_CREATED" in status
                and os.path.getsize(staged.path) > 0
            )
            if success:
                staged.commit()
                success = os.path.isfile(output_path)

        return self._result(
            request, process_result, status, success, output_path=output_path
        )

    def verify(self, signature_path, data_path=None):
        """
        <Purpose>
          Verifies a signature with the engine and relays its verdict. Trust
          is not evaluated here, the engine's trust lines are mapped to a
          Verdict:

            - VALID_TRUSTED: good signature, signer trusted fully or
              ultimately.
            - VALID_UNTRUSTED: good signature by a valid key with lesser
              trust. The result is successful but carries an
              AmbiguousVerdictError.
            - INVALID: everything else, including signatures by expired or
              revoked keys.

        <Arguments>
          signature_path:
                  Path to a clear-signed or signed document, or to a
                  detached signature.

          data_path: (optional)
                  Path to the signed data of a detached signature. If not
                  passed, the engine looks for it next to the signature
                  (e.g. "doc.txt" for "doc.txt.sig").

        <Exceptions>
          gpg_manager.exceptions.InvalidInputError:
                  If a passed path is not an existing, readable file.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

        <Side Effects>
          None.

        <Returns>
          An OperationResult with verdict.

        """
        signature_path = _check_input(signature_path)
        paths = [signature_path]
        if data_path is not None:
            data_path = _check_input(data_path)
            paths.append(data_path)

        request = OperationRequest(
            kind=OperationKind.VERIFY,
            input_path=signature_path,
            detached_data_path=data_path,
            arguments=BASE_ARGS + ["--verify", "--"] + paths,
        )
        process_result, status = self._invoke(request)

        good = (
            process_result.ok
            and "GOODSIG" in status
            and "VALIDSIG" in status
            and status.any_of(BAD_SIGNATURE_KEYWORDS) is None
        )

        if not good:
            return self._result(
                request, process_result, status, False, verdict=Verdict.INVALID
            )

        if status.any_of(TRUSTED_KEYWORDS) is not None:
            return self._result(
                request,
                process_result,
                status,
                True,
                verdict=Verdict.VALID_TRUSTED,
            )

        goodsig = status.get("GOODSIG")
        trust = status.any_of(UNTRUSTED_KEYWORDS)
        return self._result(
            request,
            process_result,
            status,
            True,
            verdict=Verdict.VALID_UNTRUSTED,
            error=AmbiguousVerdictError(
                "Good signature by {} but the key is not trusted ({})".format(
                    " ".join(goodsig.args),
                    trust.keyword if trust else "no trust information",
                )
            ),
        )

    def _decrypt_into(self, in_path, target, passphrase, output_path):
        passphrase_args, stdin_payload = _passphrase_args(passphrase)
        request = OperationRequest(
            kind=OperationKind.DECRYPT,
            input_path=in_path,
            output_path=output_path,
            arguments=BASE_ARGS
            + passphrase_args
            + ["--output", target, "--decrypt", "--", in_path],
        )
        process_result, status = self._invoke(request, stdin_payload)
        success = (
            process_result.ok
            and "DECRYPTION_OKAY" in status
            and status.any_of(["DECRYPTION_FAILED", "BADMDC"]) is None
        )
        return request, process_result, status, success

    def decrypt(self, in_path, out_path, passphrase=None):
        """
        <Purpose>
          Decrypts the passed file to the passed output path. Once returned
          successfully, the output is the caller's responsibility.

          The engine writes to a temporary file in the output directory,
          which is only moved to out_path on success and securely deleted
          otherwise, i.e. partial plaintext is never left behind and an
          existing file at out_path is only replaced on success.

        <Arguments>
          in_path:
                  Path to an existing, readable encrypted file.

          out_path:
                  Path to write the plaintext to.

          passphrase: (optional)
                  Passphrase of the decryption key or of a symmetrically
                  encrypted file.

        <Exceptions>
          gpg_manager.exceptions.InvalidInputError:
                  If in_path is not an existing, readable file.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

        <Side Effects>
          Writes out_path on success.

        <Returns>
          An OperationResult.

        """
        in_path = _check_input(in_path)
        _check_path(out_path)
        out_path = os.fspath(out_path)

        with staged_output(out_path) as staged:
            request, process_result, status, success = self._decrypt_into(
                in_path, staged.path, passphrase, out_path
            )
            if success:
                staged.commit()

        return self._result(
            request, process_result, status, success, output_path=out_path
        )

    def decrypt_then_read(self, in_path, passphrase=None):
        """
        <Purpose>
          Decrypts the passed file into a temporary file readable by the
          owner only and returns a PlaintextHandle to read it. The temporary
          file is securely deleted when the handle's scope ends, see
          PlaintextHandle.

          Use the handle as context manager:

          ```
          with operations.decrypt_then_read("secret.txt.gpg") as plaintext:
              data = plaintext.read()
          ```

        <Arguments>
          in_path:
                  Path to an existing, readable encrypted file.

          passphrase: (optional)
                  Passphrase of the decryption key or of a symmetrically
                  encrypted file.

        <Exceptions>
          gpg_manager.exceptions.InvalidInputError:
                  If in_path is not an existing, readable file.

          gpg_manager.exceptions.CryptoFailureError:
                  If the engine fails to decrypt. The failed OperationResult
                  is available as the error's result attribute.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

        <Side Effects>
          Creates a temporary plaintext file, see
          gpg_manager.util.plaintext_tmp_dir.

        <Returns>
          A PlaintextHandle.

        """
        in_path = _check_input(in_path)
        tmp_path = make_private_tmp_file()

        try:
            request, process_result, status, success = self._decrypt_into(
                in_path, tmp_path, passphrase, None
            )
            result = self._result(
                request, process_result, status, success, output_path=tmp_path
            )
            if not success:
                raise result.error

            return PlaintextHandle(tmp_path, result)

        except BaseException:
            secure_delete(tmp_path)
            raise

    def encrypt(
        self,
        in_path,
        out_path,
        recipient,
        armored=False,
        sign=False,
        signer=None,
        passphrase=None,
    ):
        """
        <Purpose>
          Encrypts the passed file for the passed recipient. The recipient is
          resolved in the KeyStore first, so that an unknown recipient fails
          before the engine is invoked.

          Like `decrypt`, the output is staged and only moved to out_path on
          success.

        <Arguments>
          in_path:
                  Path to an existing, readable file.

          out_path:
                  Path to write the encrypted file to.

          recipient:
                  Fingerprint, keyid, e-mail address or user id of a public
                  key in the KeyStore.

          armored: (optional)
                  Create ASCII armored output instead of binary output.

          sign: (optional)
                  Also sign the content, see `select_signer` for signer.

          signer: (optional)
                  Signing key if sign is True.

          passphrase: (optional)
                  Passphrase of the signing key if sign is True.

        <Exceptions>
          gpg_manager.exceptions.InvalidInputError:
                  If in_path is not an existing, readable file.

          gpg_manager.exceptions.UnknownRecipientError:
                  If the recipient is not in the KeyStore.

          gpg_manager.exceptions.UnknownSignerError:
                  If sign is True and the signer is not a known secret key.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

        <Side Effects>
          Writes out_path on success.

        <Returns>
          An OperationResult.

        """
        _check_bool(armored)
        _check_bool(sign)
        in_path = _check_input(in_path)
        _check_path(out_path)
        out_path = os.fspath(out_path)
        _check_identifier(recipient)

        record = self._keystore.find(recipient)
        if record is None:
            raise UnknownRecipientError(recipient)

        arguments = list(BASE_ARGS)
        stdin_payload = None
        signer_keyid = None
        if sign:
            signer_keyid = self.select_signer(signer)
            passphrase_args, stdin_payload = _passphrase_args(passphrase)
            arguments += passphrase_args + ["--sign"]
            if signer_keyid:
                arguments += ["--local-user", signer_keyid]

        if self.trust_model:
            arguments += ["--trust-model", self.trust_model]

        if armored:
            arguments += ["--armor"]

        with staged_output(out_path) as staged:
            request = OperationRequest(
                kind=OperationKind.ENCRYPT,
                input_path=in_path,
                output_path=out_path,
                recipient=record.keyid,
                signer=signer_keyid,
                armored=armored,
                arguments=arguments
                + ["--recipient", record.keyid]
                + ["--output", staged.path, "--encrypt", "--", in_path],
            )
            process_result, status = self._invoke(request, stdin_payload)
            success = (
                process_result.ok
                and "END_ENCRYPTION" in status
                and status.any_of(["INV_RECP", "FAILURE"]) is None
            )
            if success:
                staged.commit()

        return self._result(
            request, process_result, status, success, output_path=out_path
        )
