# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  key.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides the immutable KeyRecord, which describes one key of the engine's
  keyring, together with enums for the key kind and the validity the engine
  reports for it.

"""
import datetime
import enum
import re

import attr
import dateutil.parser
import dateutil.tz

from gpg_manager.formats import _check_hex, _check_str


class KeyKind(enum.Enum):
    """Whether a record was listed as public key only or with a secret part."""

    PUBLIC = "public"
    SECRET_CAPABLE = "secret-capable"


class Validity(enum.Enum):
    """Validity as reported in field 2 of a colon listing."""

    UNKNOWN = "o"
    INVALID = "i"
    DISABLED = "d"
    REVOKED = "r"
    EXPIRED = "e"
    UNDEFINED = "q"
    NEVER = "n"
    MARGINAL = "m"
    FULL = "f"
    ULTIMATE = "u"

    @classmethod
    def from_field(cls, field):
        """Maps a validity field to a member. Empty, "-" and unknown values
        are Validity.UNKNOWN."""
        try:
            return cls(field[:1])

        except ValueError:
            return cls.UNKNOWN


def parse_timestamp(value):
    """
    <Purpose>
      Parses a colon listing date field, which is either seconds since epoch
      or an ISO 8601 timestamp in basic format, e.g. "20261017T120000".

    <Arguments>
      value:
              The date field as str.

    <Exceptions>
      ValueError:
              If the field cannot be parsed.

    <Returns>
      A timezone aware datetime in UTC, or None for an empty field.

    """
    _check_str(value)
    if not value:
        return None

    if value.isdigit():
        return datetime.datetime.fromtimestamp(int(value), dateutil.tz.UTC)

    parsed = dateutil.parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dateutil.tz.UTC)

    return parsed


_EMAIL_PATTERN = re.compile(r"<([^<>]+)>")


@attr.s(frozen=True, repr=False)
class KeyRecord:
    """Metadata of one key (primary key and subkeys) as listed by the engine.

    KeyRecords are created by the KeyStore while parsing a key listing and are
    never modified afterwards.

    Attributes:
      keyid: The full fingerprint of the primary key, upper case hex.

      short_keyid: The 64-bit key ID of the primary key, upper case hex.

      kind: KeyKind.SECRET_CAPABLE if the key was listed with its secret
          part, KeyKind.PUBLIC otherwise.

      user_ids: Tuple of all user ids, e.g. "Alice <alice@example.com>". The
          first one is the primary user id.

      validity: The Validity the engine computed for the key.

      algorithm: Public key algorithm id (see RFC4880 9.1).

      length: Key length in bits.

      capabilities: Key capabilities, e.g. "scESC".

      creation_time: Creation time, timezone aware datetime or None.

      expiration_time: Expiration time, timezone aware datetime or None if
          the key does not expire.

      subkey_ids: Tuple of subkey fingerprints.

    """

    keyid = attr.ib()
    short_keyid = attr.ib(default="")
    kind = attr.ib(default=KeyKind.PUBLIC)
    user_ids = attr.ib(default=(), converter=tuple)
    validity = attr.ib(default=Validity.UNKNOWN)
    algorithm = attr.ib(default=0)
    length = attr.ib(default=0)
    capabilities = attr.ib(default="")
    creation_time = attr.ib(default=None)
    expiration_time = attr.ib(default=None)
    subkey_ids = attr.ib(default=(), converter=tuple)

    @keyid.validator
    def _validate_keyid(self, attribute, value):
        _check_hex(value)

    @kind.validator
    def _validate_kind(self, attribute, value):
        if not isinstance(value, KeyKind):
            raise ValueError(f"kind must be a KeyKind, got '{value}'")

    def __repr__(self):
        return "KeyRecord({}, {!r}, {})".format(
            self.keyid, self.user_id, self.kind.value
        )

    @property
    def user_id(self):
        """The primary user id, or an empty string if the key has none."""
        return self.user_ids[0] if self.user_ids else ""

    @property
    def is_secret(self):
        return self.kind is KeyKind.SECRET_CAPABLE

    @property
    def is_revoked(self):
        return self.validity is Validity.REVOKED

    def is_expired(self, now=None):
        """Returns True if the engine reports the key as expired or if its
        expiration time lies before `now` (default: current time)."""
        if self.validity is Validity.EXPIRED:
            return True

        if self.expiration_time is None:
            return False

        if now is None:
            now = datetime.datetime.now(dateutil.tz.UTC)

        return self.expiration_time <= now

    @property
    def is_usable(self):
        return not (
            self.is_revoked
            or self.is_expired()
            or self.validity in (Validity.INVALID, Validity.DISABLED)
        )

    def matches(self, identifier):
        """
        <Purpose>
          Tests whether the passed identifier names this key. The comparison
          is case insensitive and accepts:

            - the full fingerprint, or a keyid suffix of it (8 or 16 hex
              digits, optionally prefixed with "0x"),
            - the fingerprint or keyid suffix of one of the subkeys,
            - an e-mail address as found in angle brackets of a user id,
            - a complete user id.

        <Arguments>
          identifier:
                  The identifier as str.

        <Returns>
          True if the identifier names this key, False otherwise.

        """
        _check_str(identifier)
        needle = identifier.strip()
        if needle.lower().startswith("0x"):
            needle = needle[2:]

        upper = needle.upper()
        if re.fullmatch(r"[0-9A-F]+", upper):
            for fingerprint in (self.keyid,) + self.subkey_ids:
                if upper == fingerprint:
                    return True

                if len(upper) in (8, 16) and fingerprint.endswith(upper):
                    return True

        lower = identifier.strip().lower()
        for user_id in self.user_ids:
            if lower == user_id.lower():
                return True

            for email in _EMAIL_PATTERN.findall(user_id):
                if lower in (email.lower(), f"<{email.lower()}>"):
                    return True

        return False

    def to_dict(self):
        """Returns a JSON-serializable dictionary representation of self."""
        data = {
            "keyid": self.keyid,
            "short_keyid": self.short_keyid,
            "kind": self.kind.value,
            "user_ids": list(self.user_ids),
            "validity": self.validity.name.lower(),
            "algorithm": self.algorithm,
            "length": self.length,
            "capabilities": self.capabilities,
            "subkey_ids": list(self.subkey_ids),
        }
        for name in ("creation_time", "expiration_time"):
            value = getattr(self, name)
            data[name] = value.isoformat() if value else None

        return data
