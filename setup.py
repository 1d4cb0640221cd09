#!/usr/bin/env python
"""
<Program Name>
  setup.py

<Started>
  Oct 17, 2026

<Copyright>
  See LICENSE for licensing information.

<Purpose>
  setup.py script to install the gpg_manager library

"""
import io
import os
import re

from setuptools import setup, find_packages


base_dir = os.path.dirname(os.path.abspath(__file__))

def get_version(filename="gpg_manager/__init__.py"):
  """
  Gather version number from specified file.

  This is done through regex processing, so the file is not imported or
  otherwise executed.

  No format verification of the resulting version number is done.
  """
  with io.open(os.path.join(base_dir, filename), encoding="utf-8") as initfile:
    for line in initfile.readlines():
      m = re.match("__version__ *= *['\"](.*)['\"]", line)
      if m:
        return m.group(1)

with open(os.path.join(base_dir, "README.md")) as f:
  long_description = f.read()

setup(
  name="gpg-manager",
  description=("Key discovery, signing, verification, encryption and "
    "decryption on top of the GnuPG command line engine"),
  long_description_content_type="text/markdown",
  long_description=long_description,
  license="Apache-2.0",
  keywords="gpg gnupg openpgp signing encryption",
  classifiers = [
    'Development Status :: 3 - Alpha',
    'Intended Audience :: Developers',
    'License :: OSI Approved :: Apache Software License',
    'Natural Language :: English',
    'Operating System :: POSIX',
    'Operating System :: POSIX :: Linux',
    'Operating System :: MacOS :: MacOS X',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: Implementation :: CPython',
    'Topic :: Security :: Cryptography',
    'Topic :: Software Development :: Libraries'
  ],
  python_requires=">=3.8, <4",
  packages=find_packages(exclude=["*.tests", "*.tests.*", "tests.*", "tests"]),
  install_requires=["securesystemslib>=0.18.0", "attrs", "python-dateutil"],
  extras_require={
    "test": ["pytest"]
  },
  test_suite="tests.runtests",
  version=get_version(),
)
