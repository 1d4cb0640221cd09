# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  keystore.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides the KeyStore, which owns the snapshot of public and secret keys
  known to the engine. The snapshot is populated by parsing the colon
  listing (--with-colons) of the engine's list commands, as documented in
  doc/DETAILS of the GnuPG distribution, e.g.:

  ```
  pub:u:255:22:9BE9DF5131D924E9:1760702400:::u:::scESC:::::ed25519:::0:
  fpr:::::::::C5A0ABE6EC19D0D65F85E2C39BE9DF5131D924E9:
  uid:u::::1760702400::2CF8E1E1A2CA4A1F::Alice <alice@example.com>::::::::::0:
  sub:u:255:18:30C9F1E9A5BE4E2D:1760702400::::::e:::::cv25519::
  fpr:::::::::3A7F8C3C1B7D1E0B9F60E47430C9F1E9A5BE4E2D:
  ```

  The colon grammar is only interpreted in this module.

"""
import logging

import attr

from gpg_manager.exceptions import KeyNotFoundError, ParseError
from gpg_manager.formats import _check_bool, _check_identifier
from gpg_manager.models.key import KeyKind, KeyRecord, Validity, parse_timestamp

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)

LIST_ARGS = ["--with-colons", "--fixed-list-mode", "--with-fingerprint"]
LIST_PUBLIC_ARGS = LIST_ARGS + ["--list-keys"]
LIST_SECRET_ARGS = LIST_ARGS + ["--list-secret-keys"]

PRIMARY_RECORDS = {"pub": KeyKind.PUBLIC, "sec": KeyKind.SECRET_CAPABLE}
SUB_RECORDS = {"sub", "ssb"}
# Records that carry nothing a KeyRecord needs, ignored without complaint
IGNORED_RECORDS = {
    "crt",
    "crs",
    "tru",
    "rvk",
    "sig",
    "rev",
    "rvs",
    "uat",
    "cfg",
    "spk",
    "tfs",
    "pkd",
    "grp",
    "fp2",
}

# Minimum number of fields per record type
MIN_FIELDS = {"pub": 12, "sec": 12, "sub": 12, "ssb": 12, "fpr": 10, "uid": 10}


@attr.s(frozen=True)
class ParseReport:
    """Diagnostic of the last refresh: the number of malformed lines that
    were skipped in the public and the secret key listing."""

    public_skipped = attr.ib(default=0)
    secret_skipped = attr.ib(default=0)

    @property
    def skipped(self):
        return self.public_skipped + self.secret_skipped


class _KeyBlock:
    """Mutable accumulator for the records of one key while parsing."""

    def __init__(self, fields, kind, line_number):
        self.kind = kind
        self.line_number = line_number
        self.validity = Validity.from_field(fields[1])
        self.length = int(fields[2] or 0)
        self.algorithm = int(fields[3] or 0)
        self.short_keyid = fields[4].upper()
        self.creation_time = parse_timestamp(fields[5])
        self.expiration_time = parse_timestamp(fields[6])
        self.capabilities = fields[11]
        self.fingerprint = None
        self.user_ids = []
        self.subkey_ids = []
        # Set while a sub/ssb record waits for its fpr record
        self.in_subkey = False

    def to_record(self):
        return KeyRecord(
            keyid=self.fingerprint,
            short_keyid=self.short_keyid,
            kind=self.kind,
            user_ids=self.user_ids,
            validity=self.validity,
            algorithm=self.algorithm,
            length=self.length,
            capabilities=self.capabilities,
            creation_time=self.creation_time,
            expiration_time=self.expiration_time,
            subkey_ids=self.subkey_ids,
        )


def _unescape(value):
    """Decodes the C-style "\\xHH" escapes used in colon listing fields."""
    if "\\x" not in value:
        return value

    raw = value.encode("utf-8")
    out = bytearray()
    i = 0
    while i < len(raw):
        if raw[i : i + 2] == b"\\x" and i + 4 <= len(raw):
            try:
                out.append(int(raw[i + 2 : i + 4], 16))
                i += 4
                continue

            except ValueError:
                pass

        out.append(raw[i])
        i += 1

    return out.decode("utf-8", errors="replace")


def parse_key_listing(output, secret=False):
    """
    <Purpose>
      Parses the colon listing of a list command into KeyRecords.

      Malformed lines are skipped and counted instead of failing the whole
      listing. A line is malformed if its record type is unknown, if it has
      too few fields, if a numeric or date field cannot be parsed, if an fpr
      line does not hold a hex fingerprint or if a uid or fpr line does not
      belong to a key. A key that ends without fingerprint is dropped and
      its primary record counted as skipped, so is a key whose fingerprint
      was already listed. The records following a malformed pub or sec
      record are skipped as well, they never attach to the previous key.

    <Arguments>
      output:
              The listing as bytes or str.

      secret: (optional)
              True if the listing was created with --list-secret-keys.

    <Exceptions>
      gpg_manager.exceptions.ParseError:
              If the output holds lines but none of them can be parsed.

    <Returns>
      A tuple of a tuple of KeyRecords in listing order and the number of
      skipped lines.

    """
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")

    records = []
    seen = set()
    skipped = 0
    parsed = 0
    total = 0
    block = None

    def _finish(block):
        nonlocal skipped
        if block is None:
            return

        if block.fingerprint is None:
            LOG.debug(f"Dropping key without fingerprint (line {block.line_number})")
            skipped += 1

        elif block.fingerprint in seen:
            LOG.debug(f"Dropping duplicate key {block.fingerprint}")
            skipped += 1

        else:
            seen.add(block.fingerprint)
            records.append(block.to_record())

    for line_number, line in enumerate(output.splitlines(), 1):
        if not line.strip():
            continue

        total += 1
        fields = line.split(":")
        record_type = fields[0]

        if record_type in IGNORED_RECORDS:
            parsed += 1
            continue

        if record_type not in MIN_FIELDS or len(fields) < MIN_FIELDS[record_type]:
            LOG.debug(f"Skipping malformed line {line_number}: {line!r}")
            skipped += 1
            # Records up to the next primary record belong to the skipped key
            if record_type in PRIMARY_RECORDS:
                _finish(block)
                block = None
            continue

        try:
            if record_type in PRIMARY_RECORDS:
                _finish(block)
                block = None
                kind = PRIMARY_RECORDS[record_type]
                if secret:
                    kind = KeyKind.SECRET_CAPABLE

                block = _KeyBlock(fields, kind, line_number)

            elif block is None:
                raise ValueError(f"'{record_type}' record outside of a key")

            elif record_type in SUB_RECORDS:
                int(fields[2] or 0)
                int(fields[3] or 0)
                block.in_subkey = True

            elif record_type == "fpr":
                fingerprint = fields[9].upper()
                if not fingerprint or any(
                    c not in "0123456789ABCDEF" for c in fingerprint
                ):
                    raise ValueError(f"invalid fingerprint '{fields[9]}'")

                if block.in_subkey:
                    block.subkey_ids.append(fingerprint)
                    block.in_subkey = False

                elif block.fingerprint is None:
                    block.fingerprint = fingerprint

                else:
                    raise ValueError("second fingerprint for primary key")

            elif record_type == "uid":
                block.user_ids.append(_unescape(fields[9]))

        except ValueError as e:
            LOG.debug(f"Skipping malformed line {line_number}: {e}")
            skipped += 1
            continue

        parsed += 1

    _finish(block)

    if total and not parsed:
        raise ParseError(
            f"None of the {total} lines of the key listing could be parsed"
        )

    return tuple(records), skipped


class KeyStore:
    """Owns the snapshot of KeyRecords listed by the engine.

    The snapshot is only replaced by `refresh`, which either replaces the
    public keys, the secret keys and the parse report together or leaves all
    of them untouched.

    Arguments:
      invoker: The ``ProcessInvoker`` used to run the list commands.

    """

    def __init__(self, invoker):
        self._invoker = invoker
        self._public = ()
        self._secret = ()
        self.report = ParseReport()

    def _list(self, arguments, secret):
        result = self._invoker.run(arguments)
        if not result.ok:
            raise ParseError(
                "Key listing failed with exit status {}: {}".format(
                    result.exit_status, result.stderr_text().strip()
                )
            )

        return parse_key_listing(result.stdout, secret=secret)

    def refresh(self):
        """
        <Purpose>
          Lists public and secret keys with the engine and replaces the
          current snapshot.

        <Exceptions>
          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started or times out.

          gpg_manager.exceptions.ParseError:
                  If a listing fails or cannot be parsed at all.

        <Side Effects>
          Executes the engine twice. Replaces the snapshot and the parse
          report on success only.

        <Returns>
          The ParseReport of this refresh.

        """
        public, public_skipped = self._list(LIST_PUBLIC_ARGS, secret=False)
        secret, secret_skipped = self._list(LIST_SECRET_ARGS, secret=True)

        # Public keys whose secret part is available are secret-capable too
        secret_ids = {record.keyid for record in secret}
        public = tuple(
            attr.evolve(record, kind=KeyKind.SECRET_CAPABLE)
            if record.keyid in secret_ids
            else record
            for record in public
        )
        report = ParseReport(public_skipped, secret_skipped)

        if report.skipped:
            LOG.warning(
                f"Skipped {report.skipped} malformed key listing line(s)"
                f" ({public_skipped} public, {secret_skipped} secret)"
            )

        self._public, self._secret, self.report = public, secret, report
        LOG.info(f"Key store holds {len(public)} public, {len(secret)} secret keys")
        return report

    def keys(self):
        """Returns the current public key snapshot as tuple."""
        return self._public

    def secret_keys(self):
        """Returns the current secret key snapshot as tuple."""
        return self._secret

    def count(self):
        return len(self._public)

    def __len__(self):
        return self.count()

    def __iter__(self):
        return iter(self._public)

    def find(self, identifier, secret=False):
        """
        <Purpose>
          Looks up a key in the current snapshot (see KeyRecord.matches for
          accepted identifiers).

        <Arguments>
          identifier:
                  Fingerprint, keyid, e-mail address or user id.

          secret: (optional)
                  Search the secret keys instead of the public keys.

        <Exceptions>
          securesystemslib.exceptions.FormatError:
                  If the identifier is malformed.

        <Returns>
          The first matching KeyRecord or None.

        """
        _check_identifier(identifier)
        _check_bool(secret)
        for record in self._secret if secret else self._public:
            if record.matches(identifier):
                return record

        return None

    def export(self, identifier, armored=True):
        """
        <Purpose>
          Exports the public key bundle (primary key including subkeys)
          identified by the passed identifier.

        <Arguments>
          identifier:
                  Fingerprint, keyid, e-mail address or user id of a key in
                  the snapshot.

          armored: (optional)
                  Export ASCII armored (default) or binary.

        <Exceptions>
          gpg_manager.exceptions.KeyNotFoundError:
                  If the identifier is not in the snapshot or the engine
                  exports nothing.

          gpg_manager.exceptions.EngineUnavailableError:
                  If the engine cannot be started.

        <Returns>
          The exported key as bytes.

        """
        _check_bool(armored)
        record = self.find(identifier)
        if record is None:
            raise KeyNotFoundError(identifier)

        arguments = ["--armor"] if armored else []
        result = self._invoker.run(arguments + ["--export", record.keyid])
        if not result.ok or not result.stdout:
            raise KeyNotFoundError(
                identifier,
                f"Export of '{identifier}' failed: {result.stderr_text().strip()}",
            )

        return result.stdout

    def clear(self):
        """Releases all KeyRecords of the snapshot."""
        self._public = ()
        self._secret = ()
        self.report = ParseReport()
