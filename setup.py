#!/usr/bin/env python

# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Setuptools installer for qotd.
"""

import pathlib
import re

import setuptools

_VERSION = re.search(
    r'^__version__ = "([^"]+)"',
    pathlib.Path("src/qotd/__init__.py").read_text(encoding="utf8"),
    flags=re.M,
).group(1)

_EXTRAS_REQUIRE = {
    "dev": ["pyflakes >= 2.2", "twistedchecker >= 0.7"],
}

setuptools.setup(
    name="qotd",
    version=_VERSION,
    description="A Quote of the Day (RFC 865) server for TCP and UDP",
    long_description=pathlib.Path("README.rst").read_text(encoding="utf8"),
    long_description_content_type="text/x-rst",
    license="MIT",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=setuptools.find_packages("src"),
    install_requires=[
        "Twisted[tls] >= 22.10.0",
        "zope.interface >= 5",
        "attrs >= 22.2.0",
        "hyperlink >= 21.0.0",
    ],
    extras_require=_EXTRAS_REQUIRE,
    entry_points={"console_scripts": ["qotd = qotd.scripts.qotd:run"]},
    classifiers=[
        "Framework :: Twisted",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Internet",
    ],
    zip_safe=False,
)
