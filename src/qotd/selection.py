# -*- test-case-name: qotd.test.test_selection -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Random choice of the quote to serve.
"""

import random
import time
from typing import Optional, Sequence, Tuple

from qotd.store import EmptyQuoteStoreError


class Selector:
    """
    Pick quotes uniformly at random.

    The generator is L{random.Random}, which is B{not} cryptographically
    secure.  That is fine for picking quotes; do not reuse it for anything
    that needs to be unpredictable.

    @ivar _random: The pseudo-random generator, seeded once.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        @param seed: The seed for the generator.  If L{None}, the current
            time in nanoseconds is used.
        """
        if seed is None:
            seed = time.time_ns()
        self._random = random.Random(seed)

    def select(self, quotes: Sequence[str]) -> Tuple[str, int]:
        """
        Choose one quote.

        @param quotes: The quotes to choose from, usually a
            L{QuoteStore <qotd.store.QuoteStore>}.

        @return: The chosen quote and its index in C{quotes}.

        @raise EmptyQuoteStoreError: If there is nothing to choose from.
        """
        if not len(quotes):
            raise EmptyQuoteStoreError("Cannot select a quote from an empty store")
        index = self._random.randrange(len(quotes))
        return quotes[index], index


__all__ = ["Selector"]
