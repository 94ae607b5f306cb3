# -*- test-case-name: qotd -*-

# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
QOTD: a Quote of the Day server (RFC 865) for TCP and UDP.
"""

__version__ = "1.0.0"
