# Copyright the gpg-manager contributors
# SPDX-License-Identifier: Apache-2.0

"""
Configure base logger for gpg_manager (see gpg_manager.log for details) and
expose the host application entry point.

"""
import gpg_manager.log
from gpg_manager.manager import GpgManager

# gpg-manager version
__version__ = "0.1.0"
