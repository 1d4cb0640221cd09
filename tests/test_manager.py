"""
<Program Name>
  test_manager.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Test the GpgManager facade in gpg_manager/manager.py, i.e. key discovery
  on construction, degraded mode and the boolean operation interface.

"""
import os
import unittest
from unittest.mock import patch

from gpg_manager import GpgManager
from gpg_manager.exceptions import (
    AmbiguousVerdictError,
    CryptoFailureError,
    EngineUnavailableError,
    InvalidInputError,
    ParseError,
    UnknownRecipientError,
)
from gpg_manager.models.operation import Verdict
from gpg_manager.process import EngineConfig, ProcessResult
from tests.common import (
    ALICE_FPR,
    BOB_FPR,
    DECRYPT_BAD_PASSPHRASE,
    DECRYPT_OK,
    ENCRYPT_OK,
    MALFORMED_LINE,
    PUBLIC_LISTING,
    SIGN_OK,
    VERIFY_BAD,
    VERIFY_TRUSTED,
    VERIFY_UNTRUSTED,
    FakeInvoker,
    TmpDirMixin,
    listing_responses,
    write_output,
)


class TestGpgManager(unittest.TestCase, TmpDirMixin):
    def setUp(self):
        self.set_up_test_dir()
        self.write_file("doc.txt")

    def tearDown(self):
        self.tear_down_test_dir()

    def _manager(self, *listing, **kwargs):
        """Creates a GpgManager whose key store engine answers with the passed
        responses (default: the test listing)."""
        self.store_invoker = FakeInvoker(*(listing or listing_responses()))
        self.invoker = FakeInvoker()
        with patch(
            "gpg_manager.manager.ProcessInvoker",
            side_effect=[self.store_invoker, self.invoker],
        ):
            manager = GpgManager(EngineConfig(executable_path="gpg"), **kwargs)

        self.addCleanup(manager.close)
        return manager

    def test_discover_keys(self):
        manager = self._manager()
        self.assertFalse(manager.degraded)
        self.assertIsNone(manager.last_error)
        self.assertEqual(manager.key_count(), 3)
        self.assertEqual(
            [record.keyid for record in manager.get_secret_keys()], [ALICE_FPR]
        )
        self.assertEqual(manager.get_keys()[1].keyid, BOB_FPR)
        self.assertEqual(manager.find_key("bob@example.com").keyid, BOB_FPR)
        self.assertEqual(manager.parse_report.skipped, 0)

    def test_skipped_lines(self):
        manager = self._manager(*listing_responses(public=PUBLIC_LISTING + MALFORMED_LINE))
        self.assertFalse(manager.degraded)
        self.assertEqual(manager.key_count(), 3)
        self.assertEqual(manager.parse_report.public_skipped, 1)

    def test_degraded(self):
        manager = self._manager(EngineUnavailableError("gpg not found"))
        self.assertTrue(manager.degraded)
        self.assertIsInstance(manager.last_error, EngineUnavailableError)
        self.assertEqual(manager.get_keys(), ())
        self.assertEqual(manager.get_secret_keys(), ())
        self.assertEqual(manager.key_count(), 0)

        # Signing is still available, the engine picks the key
        self.invoker.queue(write_output(b"sig", SIGN_OK))
        self.assertTrue(manager.sign("doc.txt"))

        # A later refresh recovers
        self.store_invoker.queue(*listing_responses())
        self.assertTrue(manager.refresh())
        self.assertFalse(manager.degraded)
        self.assertEqual(manager.key_count(), 3)

    def test_degraded_on_parse_error(self):
        manager = self._manager(ProcessResult(0, MALFORMED_LINE))
        self.assertTrue(manager.degraded)
        self.assertIsInstance(manager.last_error, ParseError)

    def test_no_refresh(self):
        manager = self._manager(refresh=False)
        self.assertEqual(self.store_invoker.calls, [])
        self.assertEqual(manager.key_count(), 0)

    def test_sign(self):
        manager = self._manager()
        self.invoker.queue(write_output(b"-----BEGIN PGP SIGNED MESSAGE-----", SIGN_OK))
        self.assertTrue(manager.sign("doc.txt", clear_sign=True))
        self.assertTrue(os.path.isfile("doc.txt.asc"))
        self.assertTrue(manager.last_result.success)
        self.assertIsNone(manager.last_error)

    def test_sign_failures(self):
        manager = self._manager()
        self.assertFalse(manager.sign("missing.txt"))
        self.assertIsInstance(manager.last_error, InvalidInputError)
        self.assertIsNone(manager.last_result)

        self.invoker.queue(EngineUnavailableError("gpg vanished"))
        self.assertFalse(manager.sign("doc.txt"))
        self.assertIsInstance(manager.last_error, EngineUnavailableError)

        self.invoker.queue(ProcessResult(2, b"[GNUPG:] FAILURE sign 11\n"))
        self.assertFalse(manager.sign("doc.txt"))
        self.assertIsInstance(manager.last_error, CryptoFailureError)
        self.assertEqual(manager.last_result.exit_status, 2)

    def test_default_signer(self):
        manager = self._manager(default_signer="carol@example.com")
        self.assertFalse(manager.sign("doc.txt"))
        self.assertEqual(manager.last_error.identifier, "carol@example.com")
        self.assertEqual(self.invoker.calls, [])

    def test_verify(self):
        manager = self._manager()
        self.invoker.queue(ProcessResult(0, VERIFY_TRUSTED))
        self.assertTrue(manager.verify("doc.txt"))
        self.assertIsNone(manager.last_error)

        self.invoker.queue(ProcessResult(0, VERIFY_UNTRUSTED))
        self.assertTrue(manager.verify("doc.txt"))
        self.assertIsInstance(manager.last_error, AmbiguousVerdictError)
        self.assertEqual(manager.last_result.verdict, Verdict.VALID_UNTRUSTED)

        self.invoker.queue(ProcessResult(1, VERIFY_BAD))
        self.assertFalse(manager.verify("doc.txt"))
        self.assertIsInstance(manager.last_error, CryptoFailureError)

    def test_verify_verdict(self):
        manager = self._manager()
        self.invoker.queue(ProcessResult(0, VERIFY_UNTRUSTED))
        self.assertEqual(manager.verify_verdict("doc.txt"), Verdict.VALID_UNTRUSTED)

        # A failure before the engine runs does not leave stale state behind
        with self.assertRaises(InvalidInputError) as ctx:
            manager.verify_verdict("missing.txt")
        self.assertIsNone(manager.last_result)
        self.assertIs(manager.last_error, ctx.exception)

    def test_encrypt_decrypt(self):
        manager = self._manager()
        self.invoker.queue(write_output(b"\x85\x02", ENCRYPT_OK))
        self.assertTrue(manager.encrypt("doc.txt", "doc.txt.gpg", "bob@example.com"))

        self.invoker.queue(write_output(b"test data\n", DECRYPT_OK))
        self.assertTrue(manager.decrypt("doc.txt.gpg", "out.txt"))
        with open("out.txt", "rb") as fp:
            self.assertEqual(fp.read(), b"test data\n")

    def test_directory_output(self):
        """Operations whose output path is a directory fail without
        invoking the engine."""
        manager = self._manager()
        self.write_file("doc.txt.gpg", b"\x85\x02")
        for name in ("doc.txt.sig", "enc-dir", "dec-dir"):
            os.mkdir(name)

        self.assertFalse(manager.sign("doc.txt"))
        self.assertIsInstance(manager.last_error, InvalidInputError)

        self.assertFalse(manager.encrypt("doc.txt", "enc-dir", "bob@example.com"))
        self.assertIsInstance(manager.last_error, InvalidInputError)

        self.assertFalse(manager.decrypt("doc.txt.gpg", "dec-dir"))
        self.assertIsInstance(manager.last_error, InvalidInputError)
        self.assertIsNone(manager.last_result)

        self.assertEqual(self.invoker.calls, [])

    def test_encrypt_unknown_recipient(self):
        manager = self._manager()
        self.assertFalse(manager.encrypt("doc.txt", "doc.txt.gpg", "mallory@example.com"))
        self.assertIsInstance(manager.last_error, UnknownRecipientError)
        self.assertEqual(self.invoker.calls, [])

    def test_decrypt_then_read(self):
        manager = self._manager()
        self.write_file("doc.txt.gpg", b"\x85\x02")

        self.invoker.queue(write_output(b"test data\n", DECRYPT_OK))
        with manager.decrypt_then_read("doc.txt.gpg") as plaintext:
            self.assertEqual(plaintext.read(), b"test data\n")
        self.assertIs(manager.last_result, plaintext.result)
        self.assertFalse(os.path.exists(plaintext.path))

        self.invoker.queue(ProcessResult(2, DECRYPT_BAD_PASSPHRASE))
        with self.assertRaises(CryptoFailureError):
            manager.decrypt_then_read("doc.txt.gpg", passphrase="wrong")
        self.assertIsInstance(manager.last_error, CryptoFailureError)
        self.assertFalse(manager.last_result.success)

    def test_export_key(self):
        manager = self._manager()
        self.store_invoker.queue(ProcessResult(0, b"-----BEGIN PGP PUBLIC KEY BLOCK-----"))
        self.assertTrue(manager.export_key("alice@example.com").startswith(b"-----"))

    def test_close(self):
        with self._manager() as manager:
            self.assertEqual(manager.key_count(), 3)

        self.assertTrue(manager.closed)
        with self.assertRaises(ValueError):
            manager.get_keys()
        with self.assertRaises(ValueError):
            manager.sign("doc.txt")

        # Closing again has no effect
        manager.close()

    def test_config_from_settings(self):
        with patch("gpg_manager.manager.ProcessInvoker") as mock_invoker, patch(
            "gpg_manager.manager.KeyStore"
        ):
            manager = GpgManager(refresh=False)

        self.assertIsInstance(manager.config, EngineConfig)
        mock_invoker.assert_called_with(manager.config)


if __name__ == "__main__":
    unittest.main()
