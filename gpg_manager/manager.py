# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  manager.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides GpgManager, the single entry point for host applications. It owns
  a KeyStore and a CryptoOperations instance, discovers keys on
  construction and offers the public operation set:

  ```
  from gpg_manager import GpgManager

  with GpgManager() as manager:
      for key in manager.get_keys():
          print(key.keyid, key.user_id)

      if not manager.sign("doc.txt", clear_sign=True):
          print(manager.last_error)

      with manager.decrypt_then_read("secret.txt.gpg") as plaintext:
          data = plaintext.read()
  ```

  A manager is not thread-safe. Use one manager per thread or serialize all
  calls externally.

"""
import logging

from securesystemslib.exceptions import Error

from gpg_manager.keystore import KeyStore
from gpg_manager.operations import CryptoOperations
from gpg_manager.process import EngineConfig, ProcessInvoker

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)


class GpgManager:
    """Facade over key discovery and cryptographic operations.

    Construction lists the engine's keys. If that fails, the manager is still
    created, but is `degraded`: key accessors return empty results until a
    `refresh` succeeds, while signing and verification remain available.

    The boolean operations `sign`, `verify`, `encrypt` and `decrypt` return
    False on any failure. The reason remains available in `last_error` (the
    typed exception) and, if the engine was invoked, in `last_result` (the
    OperationResult with exit status, status lines and diagnostic text).

    Arguments:
      config: (optional) An ``EngineConfig``. If not passed, it is created
          from gpg_manager.settings.

      default_signer: (optional) Identifier of the key used by `sign` if no
          signer is passed.

      refresh: (optional) Discover keys on construction (default True).

    Attributes:
      degraded: True if the last key discovery failed.

      last_result: The OperationResult of the last operation, or None if the
          last operation failed before the engine was invoked.

      last_error: The exception of the last failed or ambiguous operation or
          key discovery, None after a successful one.

    """

    def __init__(self, config=None, default_signer=None, refresh=True):
        if config is None:
            config = EngineConfig.from_settings()

        self.config = config
        self._keystore = KeyStore(ProcessInvoker(config))
        self._operations = CryptoOperations(
            ProcessInvoker(config), self._keystore, default_signer=default_signer
        )
        self.degraded = False
        self.last_result = None
        self.last_error = None

        if refresh:
            self.refresh()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __del__(self):
        # Guarded, __init__ may have failed before the attributes were set
        if getattr(self, "_keystore", None) is not None:
            self.close()

    @property
    def closed(self):
        return self._keystore is None

    def _check_open(self):
        if self.closed:
            raise ValueError("Operation on closed GpgManager")

    def close(self):
        """Releases the key store, all KeyRecords and the operations. The
        manager cannot be used afterwards."""
        if self._keystore is not None:
            self._keystore.clear()

        self._keystore = None
        self._operations = None
        self.last_result = None

    @property
    def keystore(self):
        self._check_open()
        return self._keystore

    @property
    def operations(self):
        self._check_open()
        return self._operations

    def refresh(self):
        """
        <Purpose>
          (Re-)discovers the engine's public and secret keys. Failures are
          logged and recorded, not raised.

        <Side Effects>
          Executes the engine. Sets `degraded` and `last_error`.

        <Returns>
          True if the keys were listed, False otherwise. On False the previous
          key snapshot remains in place.

        """
        self._check_open()
        try:
            report = self._keystore.refresh()

        except Error as e:
            LOG.warning(f"Key discovery failed, key listing unavailable: {e}")
            self.degraded = True
            self.last_error = e
            return False

        self.degraded = False
        self.last_error = None
        if report.skipped:
            LOG.info(f"{report.skipped} key listing line(s) skipped")

        return True

    @property
    def parse_report(self):
        """The ParseReport of the last successful key discovery."""
        return self.keystore.report

    def get_keys(self):
        """Returns the known public keys as tuple of KeyRecords."""
        return self.keystore.keys()

    def get_secret_keys(self):
        """Returns the known secret keys as tuple of KeyRecords."""
        return self.keystore.secret_keys()

    def key_count(self):
        return self.keystore.count()

    def find_key(self, identifier, secret=False):
        return self.keystore.find(identifier, secret=secret)

    def export_key(self, identifier, armored=True):
        return self.keystore.export(identifier, armored=armored)

    def _run(self, operation, *args, **kwargs):
        """Runs an operation, records its result and error and returns its
        success as bool."""
        self._check_open()
        self.last_result = None
        self.last_error = None
        try:
            result = operation(*args, **kwargs)

        except Error as e:
            LOG.info(f"{operation.__name__} failed: {e}")
            self.last_error = e
            return False

        self.last_result = result
        self.last_error = result.error
        return result.success

    def sign(self, file_path, clear_sign=False, **kwargs):
        """Signs a file, see CryptoOperations.sign. Writes "<file_path>.asc"
        (clear-signed or armored) or "<file_path>.sig" (detached). Returns
        True on success."""
        return self._run(
            self.operations.sign, file_path, clear_sign=clear_sign, **kwargs
        )

    def verify(self, signature_path, data_path=None):
        """Verifies a signature, see CryptoOperations.verify.

        Returns True for good signatures, including those by keys that are
        valid but not trusted. In that case `last_error` holds an
        AmbiguousVerdictError. Use `verify_verdict` for the tri-state.

        """
        return self._run(self.operations.verify, signature_path, data_path)

    def verify_verdict(self, signature_path, data_path=None):
        """Verifies a signature and returns the Verdict. Failures before the
        engine is invoked raise."""
        self._check_open()
        self.last_result = None
        self.last_error = None
        try:
            result = self._operations.verify(signature_path, data_path)

        except Error as e:
            self.last_error = e
            raise

        self.last_result = result
        self.last_error = result.error
        return result.verdict

    def decrypt(self, in_path, out_path, passphrase=None):
        """Decrypts to out_path, see CryptoOperations.decrypt. Returns True
        on success."""
        return self._run(
            self.operations.decrypt, in_path, out_path, passphrase=passphrase
        )

    def encrypt(self, in_path, out_path, recipient, armored=False, **kwargs):
        """Encrypts for a known recipient, see CryptoOperations.encrypt.
        Returns True on success."""
        return self._run(
            self.operations.encrypt,
            in_path,
            out_path,
            recipient,
            armored=armored,
            **kwargs,
        )

    def decrypt_then_read(self, in_path, passphrase=None):
        """Returns a PlaintextHandle to the decrypted content of in_path, see
        CryptoOperations.decrypt_then_read. Failures raise and are recorded
        in `last_error`."""
        self._check_open()
        self.last_result = None
        self.last_error = None
        try:
            handle = self._operations.decrypt_then_read(
                in_path, passphrase=passphrase
            )

        except Error as e:
            self.last_error = e
            self.last_result = getattr(e, "result", None)
            raise

        self.last_result = handle.result
        return handle
