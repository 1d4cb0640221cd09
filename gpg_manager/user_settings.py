# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
<Program Name>
  user_settings.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  Provides methods to parse environment variables (`get_env`) and RCfiles
  (`get_rc`) and to override default settings (`set_settings`) defined in the
  `gpg_manager.settings` module.

  Check out the respective docstrings to learn about the requirements for
  environment variables and RCfiles (includes examples).

"""
import configparser
import logging
import os

import gpg_manager.settings

# Inherits from gpg_manager base logger (c.f. gpg_manager.log)
LOG = logging.getLogger(__name__)


USER_PATH = os.path.expanduser("~")

# Prefix required by environment variables to be considered as settings
ENV_PREFIX = "GPG_MANAGER_"

# List of considered rcfile paths in the order they get parsed and overridden,
# i.e. the same setting in `/etc/gpg_manager/config` and `.gpg_managerrc`
# (cwd) uses the latter
RC_PATHS = [
    os.path.join("/etc", "gpg_manager", "config"),
    os.path.join(USER_PATH, ".config", "gpg_manager", "config"),
    os.path.join(USER_PATH, ".gpg_managerrc"),
    ".gpg_managerrc",
]

# List of settings, for which defaults exist in `settings.py`
SETTINGS = [
    "GPG_COMMAND",
    "GPG_HOMEDIR",
    "SUBPROCESS_TIMEOUT",
    "DEFAULT_SIGNER",
    "PLAINTEXT_TMP_DIR",
    "SECURE_DELETE_PASSES",
    "TRUST_MODEL",
]

# Settings that are converted from str before they are set
NUMERIC_SETTINGS = {"SUBPROCESS_TIMEOUT": float, "SECURE_DELETE_PASSES": int}


def get_env():
    """
    <Purpose>
      Parse environment for variables with prefix `ENV_PREFIX` and return
      a dict of key-value pairs.

      The prefix `ENV_PREFIX` is stripped from the keys in the returned dict.

      Example:

      ```
      # Exporting variables in e.g. bash
      export GPG_MANAGER_GPG_HOMEDIR='/home/user/.gnupg-work'
      export GPG_MANAGER_SUBPROCESS_TIMEOUT='10'
      ```

      produces

      ```
      {
        "GPG_HOMEDIR": "/home/user/.gnupg-work"
        "SUBPROCESS_TIMEOUT": "10"
      }
      ```

    <Exceptions>
      None.

    <Side Effects>
      Reads environment variables.

    <Returns>
      A dictionary containing the parsed key-value pairs.

    """
    env_dict = {}

    for name, value in os.environ.items():
        if name.startswith(ENV_PREFIX) and len(name) > len(ENV_PREFIX):
            stripped_name = name[len(ENV_PREFIX) :]

            env_dict[stripped_name] = value

    return env_dict


def get_rc():
    """
    <Purpose>
      Reads RCfiles from the paths defined in `RC_PATHS` and returns
      a dictionary with all parsed key-value pairs.

      The RCfile format is as expected by Python's builtin `ConfigParser`.
      Values are kept as str, e.g. a path containing colons is not split.

      Section titles in RCfiles are ignored when parsing the key-value pairs.
      However, there has to be at least one section defined.

      The paths in `RC_PATHS` are ordered in reverse precedence, i.e. each
      file's settings override a previous file's settings, e.g. a setting
      defined in `.gpg_managerrc` (in the current working dir) overrides the
      same setting defined in `~/.gpg_managerrc` (in the user's home dir) and
      so on ...

      Example:

      ```
      # E.g. file `.gpg_managerrc` in current working directory
      [gpg-manager settings]
      GPG_COMMAND = /usr/local/bin/gpg
      SUBPROCESS_TIMEOUT = 10
      ```

      produces

      ```
      {
        "GPG_COMMAND": "/usr/local/bin/gpg"
        "SUBPROCESS_TIMEOUT": "10"
      }
      ```

    <Exceptions>
      None.

    <Side Effects>
      Calls function to read files from disk.

    <Returns>
      A dictionary containing the parsed key-value pairs.

    """
    rc_dict = {}

    config = configparser.ConfigParser()
    # Reset `optionxform`'s default case conversion to enable case-sensitivity
    config.optionxform = str
    config.read(RC_PATHS)

    for section in config.sections():
        for name, value in config.items(section):
            rc_dict[name] = value

    return rc_dict


def set_settings():
    """
    <Purpose>
      Calls functions that read gpg_manager related environment variables
      and RCfiles and overrides variables in `settings.py` with the retrieved
      values, if they are whitelisted in `SETTINGS`.

      Settings defined in RCfiles take precedence over settings defined in
      environment variables.

    <Exceptions>
      ValueError:
              If a numeric setting cannot be converted.

    <Side Effects>
      Calls functions that read environment variables and files from disk.

    <Returns>
      None.

    """
    user_settings = get_env()
    user_settings.update(get_rc())

    # If the user has specified one of the settings whitelisted in
    # SETTINGS per envvar or rcfile, override the item in `settings.py`
    for setting in SETTINGS:
        user_setting = user_settings.get(setting)
        if user_setting:
            if setting in NUMERIC_SETTINGS:
                user_setting = NUMERIC_SETTINGS[setting](user_setting)

            LOG.info(f"Setting (user): {setting}={user_setting}")
            setattr(gpg_manager.settings, setting, user_setting)

        else:
            default_setting = getattr(gpg_manager.settings, setting)
            LOG.info(f"Setting (default): {setting}={default_setting}")
