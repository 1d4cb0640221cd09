# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  settings.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  A central place to define default settings that can be used throughout the
  package.

  Defaults can be changed,
   - here (hardcoded),
   - programmatically, e.g.
     ```
     import gpg_manager.settings
     gpg_manager.settings.GPG_HOMEDIR = "/home/user/.gnupg-work"
     ```
  - or with environment variables or RCfiles, see the
    `gpg_manager.user_settings` module

  Settings are read when a `gpg_manager.process.EngineConfig` is created, i.e.
  changing them affects managers created afterwards only.

"""
# The debug setting is used to set the gpg_manager base logger to logging.DEBUG
DEBUG = False

# Name or path of the engine executable. If not set, "gpg2" and then "gpg" are
# looked up on the PATH (see `gpg_manager.process.discover_executable`)
GPG_COMMAND = None

# Keyring directory passed to the engine as --homedir. If not set, the engine
# uses its own default (e.g. $GNUPGHOME or ~/.gnupg)
GPG_HOMEDIR = None

# Wall-clock timeout in seconds for every engine invocation. The engine is
# killed if it runs longer, e.g. because it waits for a passphrase prompt.
SUBPROCESS_TIMEOUT = 30

# Fingerprint, keyid or user id of the key used by `sign` if the caller does
# not pass one. If not set, the first secret key in the key store is used.
DEFAULT_SIGNER = None

# Directory for plaintext materialized by `decrypt_then_read`. If not set,
# /dev/shm is used if writable, the system temp dir otherwise.
PLAINTEXT_TMP_DIR = None

# Number of overwrite passes before a plaintext file is unlinked
SECURE_DELETE_PASSES = 3

# Passed to the engine as --trust-model for encryption, if set
TRUST_MODEL = None
