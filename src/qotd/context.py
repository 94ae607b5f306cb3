# -*- test-case-name: qotd.test.test_context -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Process-wide state shared by every QOTD handler.
"""

import uuid
from typing import Tuple

from attrs import field, frozen

from twisted.logger import Logger

from qotd.config import ServerConfig
from qotd.selection import Selector
from qotd.store import QuoteStore
from qotd.wire import formatQuote


def _defaultLogger() -> Logger:
    return Logger(namespace="qotd")


@frozen
class ServerContext:
    """
    Everything a connection or datagram handler needs, built once before
    any listener starts and never changed afterwards.

    @ivar store: The quotes to serve.
    @ivar strict: Whether responses are truncated to the RFC 865 limit.
    @ivar selector: Picks the quote for each request.
    @ivar log: Where handlers report requests and failures.
    """

    store: QuoteStore
    strict: bool = False
    selector: Selector = field(factory=Selector)
    log: Logger = field(factory=_defaultLogger)

    @classmethod
    def fromConfig(cls, config: ServerConfig, store: QuoteStore) -> "ServerContext":
        """
        Build the context for a server running with C{config}.
        """
        return cls(store=store, strict=config.strict)

    def nextQuote(self) -> Tuple[bytes, int]:
        """
        Pick a quote and render it for the wire.

        @return: The response bytes and the index of the quote in the store.
        """
        quote, index = self.selector.select(self.store)
        return formatQuote(quote, self.strict), index

    def newRequestID(self) -> str:
        """
        Generate a unique identifier for one request, for correlating log
        events.
        """
        return str(uuid.uuid4())


__all__ = ["ServerContext"]
