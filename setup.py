# SPDX-License-Identifier: FSFAP
# Copyright (C) 2024-2025 The APSAS Developers
#
# Copying and distribution of this file, with or without modification,
# are permitted in any medium without royalty provided the copyright
# notice and this notice are preserved.  This file is offered as-is,
# without any warranty.

import os
from setuptools import setup, find_packages

# This directory
dir_setup = os.path.dirname(os.path.realpath(__file__))

with open(os.path.join(dir_setup, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with open(os.path.join(dir_setup, "apsas", "version.py")) as f:
    # Defines __version__
    exec(f.read())

install_requires = [
    "arrow>=1.1.1",
    "requests",
    "urllib3",
    "stdiomask>=0.0.6",
    'tomli>=2.0.1 ; python_version<"3.11"',  # until we drop 3.10
    "tomlkit>=0.11.4",
    "tqdm",
    "tabulate",
    "aiohttp>=3.7.2",
    "python-docx>=0.8.11",
    "openpyxl",
]

setup(
    name="apsas",
    version=__version__,  # noqa: F821
    description="Bulk export of grading groups and submissions from APSAS",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="The APSAS Developers",
    license="AGPLv3+",
    python_requires=">=3.8",
    packages=find_packages(include=["apsas", "apsas.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU Affero General Public License v3 or later (AGPLv3+)",
        "Development Status :: 3 - Alpha",
        "Operating System :: OS Independent",
        "Topic :: Education :: Testing",
    ],
    entry_points={
        "console_scripts": [
            "apsas-export=apsas.export.__main__:main",
        ],
    },
    install_requires=install_requires,
    extras_require={
        "test": ["pytest"],
    },
)
