# -*- test-case-name: qotd.test.test_store -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The in-memory collection of quotes served by the QOTD protocol.

Quote sources are plain text with one quote after another, separated by a
line holding nothing but a percent sign, the same layout fortune(6) uses::

    Simplicity is prerequisite for reliability.
    %
    Premature optimization is the root of all evil.
"""

import re
from typing import Iterable, Iterator, Tuple, overload

_DELIMITER = re.compile(r"\r?\n%\r?\n")
_TRAILING_NEWLINE = re.compile(r"\r?\n\Z")


class EmptyQuoteStoreError(ValueError):
    """
    A L{QuoteStore} was requested without any quotes in it.
    """


def parseQuotes(text: str) -> Tuple[str, ...]:
    """
    Split the text of a quote source into individual quotes.

    @param text: The decoded contents of a quote source.

    @return: The quotes, in the order they appear in C{text}.  Text which
        is empty or blank yields no quotes at all.  The line break ending
        the source is not part of the last quote; a source ending with a
        delimiter line therefore has an empty last quote, which is kept.
    """
    if not text.strip():
        return ()
    quotes = _DELIMITER.split(text)
    quotes[-1] = _TRAILING_NEWLINE.sub("", quotes[-1], count=1)
    return tuple(quotes)


class QuoteStore:
    """
    An immutable, ordered, non-empty sequence of quotes.

    A store is built once at startup and then read from every connection
    and datagram handler without any locking; nothing mutates it.

    @ivar _quotes: The quotes.
    @type _quotes: L{tuple} of L{str}
    """

    __slots__ = ("_quotes",)

    def __init__(self, quotes: Iterable[str]) -> None:
        """
        @param quotes: The quotes to serve.

        @raise EmptyQuoteStoreError: If C{quotes} is empty.
        """
        quotes = tuple(quotes)
        if not quotes:
            raise EmptyQuoteStoreError("A quote store needs at least one quote")
        object.__setattr__(self, "_quotes", quotes)

    @classmethod
    def fromText(cls, text: str) -> "QuoteStore":
        """
        Build a store from the text of a quote source.

        @see: L{parseQuotes}
        """
        return cls(parseQuotes(text))

    def __setattr__(self, name, value):
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def __len__(self) -> int:
        return len(self._quotes)

    @overload
    def __getitem__(self, index: int) -> str:
        ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[str, ...]:
        ...

    def __getitem__(self, index):
        return self._quotes[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._quotes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuoteStore):
            return NotImplemented
        return self._quotes == other._quotes

    def __hash__(self) -> int:
        return hash(self._quotes)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} with {len(self)} quotes>"


__all__ = ["EmptyQuoteStoreError", "QuoteStore", "parseQuotes"]
