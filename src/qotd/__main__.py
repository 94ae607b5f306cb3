# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

# Make the qotd package executable with the default behaviour of
# running the qotd server.


import sys

from qotd.scripts.qotd import run

if __name__ == "__main__":
    sys.exit(run())
