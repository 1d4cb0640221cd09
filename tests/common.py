"""
<Program Name>
  common.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Common code for gpg_manager unittests, import like so:
  `import tests.common`

  Tests importing this module, should be run from the project root, e.g.:
  `python -m unittest tests.test_keystore`
  or using the aggregator script (preferred way):
  `python tests/runtests.py`.

"""
import os
import shutil
import tempfile

from gpg_manager.process import ProcessResult

ALICE_FPR = "C5A0ABE6EC19D0D65F85E2C39BE9DF5131D924E9"
ALICE_KEYID = "9BE9DF5131D924E9"
ALICE_SUBKEY_FPR = "3A7F8C3C1B7D1E0B9F60E47430C9F1E9A5BE4E2D"
BOB_FPR = "8465A1E2E0FB2B40ADB2478E18FB3F537E0C8A17"
CAROL_FPR = "7B3ABB26B97B655AB9296BD15B0BD02E1C768C43"

# Colon listing of three keys: Alice (ultimately trusted, with encryption
# subkey), Bob (full validity, expires 2033) and Carol (expired)
PUBLIC_LISTING = (
    "tru::1:1760702400:0:3:1:5\n"
    "pub:u:255:22:9BE9DF5131D924E9:1760702400:::u:::scESC:::::ed25519:::0:\n"
    f"fpr:::::::::{ALICE_FPR}:\n"
    "uid:u::::1760702400::2CF8E1E1A2CA4A1F::Alice <alice@example.com>::::::::::0:\n"
    "sub:u:255:18:30C9F1E9A5BE4E2D:1760702400::::::e:::::cv25519::\n"
    f"fpr:::::::::{ALICE_SUBKEY_FPR}:\n"
    "pub:f:3072:1:18FB3F537E0C8A17:1700000000:2000000000::-:::scESC::::::::0:\n"
    f"fpr:::::::::{BOB_FPR}:\n"
    "uid:f::::1700000000::6F3C2B1A0E9D8C7B::Bob Example <bob@example.com>::::::::::0:\n"
    "pub:e:2048:1:5B0BD02E1C768C43:1500000000:1600000000::-:::sc::::::::0:\n"
    f"fpr:::::::::{CAROL_FPR}:\n"
    "uid:e::::1500000000::1A2B3C4D5E6F7A8B::Carol <carol@example.com>::::::::::0:\n"
).encode("utf-8")

SECRET_LISTING = (
    "sec:u:255:22:9BE9DF5131D924E9:1760702400:::u:::scESC:::+:::ed25519:::0:\n"
    f"fpr:::::::::{ALICE_FPR}:\n"
    "uid:u::::1760702400::2CF8E1E1A2CA4A1F::Alice <alice@example.com>::::::::::0:\n"
    "ssb:u:255:18:30C9F1E9A5BE4E2D:1760702400::::::e:::+:::cv25519::\n"
    f"fpr:::::::::{ALICE_SUBKEY_FPR}:\n"
).encode("utf-8")

MALFORMED_LINE = b"this line is not a colon record\n"

SIGN_OK = (
    "[GNUPG:] KEY_CONSIDERED {0} 2\n"
    "[GNUPG:] BEGIN_SIGNING H10\n"
    "[GNUPG:] SIG_CREATED D 22 10 00 1760702400 {0}\n"
).format(ALICE_FPR).encode("utf-8")

VERIFY_GOOD = (
    "[GNUPG:] NEWSIG\n"
    "[GNUPG:] KEY_CONSIDERED {0} 0\n"
    "[GNUPG:] SIG_ID 3rMoXQ8r5q2n4vBTs3VhM4y3mAc 2026-10-17 1760702400\n"
    "[GNUPG:] GOODSIG 9BE9DF5131D924E9 Alice <alice@example.com>\n"
    "[GNUPG:] VALIDSIG {0} 2026-10-17 1760702400 0 4 0 22 10 00 {0}\n"
).format(ALICE_FPR)

VERIFY_TRUSTED = (VERIFY_GOOD + "[GNUPG:] TRUST_ULTIMATE 0 pgp\n").encode("utf-8")
VERIFY_UNTRUSTED = (VERIFY_GOOD + "[GNUPG:] TRUST_UNDEFINED 0 pgp\n").encode(
    "utf-8"
)
VERIFY_BAD = (
    b"[GNUPG:] NEWSIG\n"
    b"[GNUPG:] BADSIG 9BE9DF5131D924E9 Alice <alice@example.com>\n"
)
VERIFY_EXPIRED_KEY = (
    "[GNUPG:] NEWSIG\n"
    "[GNUPG:] KEYEXPIRED 1600000000\n"
    "[GNUPG:] EXPKEYSIG 5B0BD02E1C768C43 Carol <carol@example.com>\n"
    "[GNUPG:] VALIDSIG {0} 2020-01-01 1577836800 0 4 0 1 10 00 {0}\n"
).format(CAROL_FPR).encode("utf-8")

DECRYPT_OK = (
    b"[GNUPG:] ENC_TO 30C9F1E9A5BE4E2D 18 0\n"
    b"[GNUPG:] BEGIN_DECRYPTION\n"
    b"[GNUPG:] DECRYPTION_INFO 2 9 0\n"
    b"[GNUPG:] PLAINTEXT 62 1760702400 \n"
    b"[GNUPG:] DECRYPTION_OKAY\n"
    b"[GNUPG:] GOODMDC\n"
    b"[GNUPG:] END_DECRYPTION\n"
)
DECRYPT_BAD_PASSPHRASE = (
    b"[GNUPG:] NEED_PASSPHRASE_SYM 9 3 2\n"
    b"[GNUPG:] BAD_PASSPHRASE 9BE9DF5131D924E9\n"
    b"[GNUPG:] BEGIN_DECRYPTION\n"
    b"[GNUPG:] DECRYPTION_FAILED\n"
    b"[GNUPG:] END_DECRYPTION\n"
)

ENCRYPT_OK = (
    b"[GNUPG:] KEY_CONSIDERED " + ALICE_FPR.encode("utf-8") + b" 0\n"
    b"[GNUPG:] BEGIN_ENCRYPTION 2 9\n"
    b"[GNUPG:] END_ENCRYPTION\n"
)
ENCRYPT_INV_RECP = b"[GNUPG:] INV_RECP 10 " + BOB_FPR.encode("utf-8") + b"\n"


def write_output(content, stdout=b"", exit_status=0, stderr=b""):
    """Returns a FakeInvoker response that writes the passed content to the
    path passed with --output, like the engine would."""

    def _respond(arguments):
        path = arguments[arguments.index("--output") + 1]
        with open(path, "wb") as fp:
            fp.write(content)
        return ProcessResult(exit_status, stdout, stderr)

    return _respond


class FakeInvoker:
    """Stand-in for ProcessInvoker that records the invocations and answers
    them with queued responses, i.e. a ProcessResult, an exception to raise,
    or a callable that takes the arguments and returns a ProcessResult."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def run(self, arguments, stdin_payload=None, timeout=None):
        self.calls.append((list(arguments), stdin_payload))
        if not self.responses:
            raise AssertionError(f"Unexpected engine invocation {arguments!r}")

        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response

        if callable(response):
            return response(list(arguments))

        return response

    @property
    def last_arguments(self):
        return self.calls[-1][0]

    @property
    def last_stdin(self):
        return self.calls[-1][1]


def listing_responses(public=PUBLIC_LISTING, secret=SECRET_LISTING):
    """Returns the two responses needed by KeyStore.refresh."""
    return [ProcessResult(0, public), ProcessResult(0, secret)]


class TmpDirMixin:
    """Mixin with classmethods to create and change into a temporary directory,
    and to change back to the original CWD and remove the temporary directory.

    """

    @classmethod
    def set_up_test_dir(cls):
        """Back up CWD, and create and change into temporary directory."""
        cls.original_cwd = os.getcwd()
        cls.test_dir = os.path.realpath(tempfile.mkdtemp())
        os.chdir(cls.test_dir)

    @classmethod
    def tear_down_test_dir(cls):
        """Change back to original CWD and remove temporary directory."""
        os.chdir(cls.original_cwd)
        shutil.rmtree(cls.test_dir)

    @staticmethod
    def write_file(name, content=b"test data\n"):
        with open(name, "wb") as fp:
            fp.write(content)
        return name
