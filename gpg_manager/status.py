# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  status.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Parse the machine-readable status lines the engine writes to the file
  descriptor passed with --status-fd, e.g.:

  ```
  [GNUPG:] NEWSIG
  [GNUPG:] GOODSIG 9BE9DF5131D924E9 Alice <alice@example.com>
  [GNUPG:] VALIDSIG C5A0ABE6EC19D0D65F85E2C39BE9DF5131D924E9 ...
  [GNUPG:] TRUST_ULTIMATE 0 pgp
  ```

  The grammar is documented in doc/DETAILS of the GnuPG distribution. This
  module only tokenizes, interpretation is done in gpg_manager.operations.

"""
import attr

STATUS_PREFIX = "[GNUPG:] "

# Trust levels that make a good signature a trusted one
TRUSTED_KEYWORDS = frozenset(["TRUST_FULLY", "TRUST_ULTIMATE"])
UNTRUSTED_KEYWORDS = frozenset(
    ["TRUST_UNDEFINED", "TRUST_NEVER", "TRUST_MARGINAL"]
)

# Keywords that mark a signature as not valid, even if the engine saw a
# cryptographically correct one (expired or revoked signer)
BAD_SIGNATURE_KEYWORDS = frozenset(
    ["BADSIG", "ERRSIG", "EXPSIG", "EXPKEYSIG", "REVKEYSIG", "NO_PUBKEY"]
)


@attr.s(frozen=True)
class StatusLine:
    """One status line, split into its keyword and its arguments."""

    keyword = attr.ib()
    args = attr.ib(default=(), converter=tuple)

    def __str__(self):
        return " ".join((self.keyword,) + self.args)


@attr.s(frozen=True)
class StatusReport:
    """All status lines of one engine invocation."""

    lines = attr.ib(default=(), converter=tuple)

    def __contains__(self, keyword):
        return any(line.keyword == keyword for line in self.lines)

    def __iter__(self):
        return iter(self.lines)

    def __len__(self):
        return len(self.lines)

    def get(self, keyword):
        """Returns the first StatusLine with the passed keyword or None."""
        for line in self.lines:
            if line.keyword == keyword:
                return line

        return None

    def any_of(self, keywords):
        """Returns the first StatusLine whose keyword is in the passed
        collection, or None."""
        for line in self.lines:
            if line.keyword in keywords:
                return line

        return None

    def keywords(self):
        return [line.keyword for line in self.lines]


def parse_status(output):
    """
    <Purpose>
      Extracts status lines from the passed engine output. Lines without the
      "[GNUPG:] " prefix are ignored, so the function can also be used on a
      stream that mixes status lines and human readable messages.

      The user id argument of GOODSIG, BADSIG, EXPSIG, EXPKEYSIG and
      REVKEYSIG may contain spaces. It is kept as one argument.

    <Arguments>
      output:
              Engine output as bytes or str.

    <Returns>
      A StatusReport.

    """
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")

    lines = []
    for raw_line in output.splitlines():
        if not raw_line.startswith(STATUS_PREFIX):
            continue

        parts = raw_line[len(STATUS_PREFIX) :].strip().split(" ")
        keyword, args = parts[0], parts[1:]
        if not keyword:
            continue

        if keyword in ("GOODSIG", "BADSIG", "EXPSIG", "EXPKEYSIG", "REVKEYSIG"):
            args = args[:1] + [" ".join(args[1:])] if len(args) > 1 else args

        lines.append(StatusLine(keyword, args))

    return StatusReport(lines)
