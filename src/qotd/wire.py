# -*- test-case-name: qotd.test.test_wire -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The Quote of the Day protocol (RFC 865), over TCP and UDP.

A TCP client connects and receives a single quote, after which the server
closes the connection; anything the client sends is ignored.  A UDP client
sends a datagram, whose content is ignored, and receives a single quote in
one reply datagram.
"""

from typing import TYPE_CHECKING, Optional, Tuple

from twisted.internet import protocol
from twisted.protocols import policies

if TYPE_CHECKING:
    from qotd.context import ServerContext

RFC865_MAX_LENGTH = 512

_ELLIPSIS = b"..."
_TERMINATOR = b"\r\n"


def formatQuote(quote: str, strict: bool = False) -> bytes:
    """
    Render a quote as it goes on the wire.

    In strict mode a quote longer than L{RFC865_MAX_LENGTH} bytes is cut
    down to its first 506 bytes and marked with an ellipsis, so the whole
    response, terminator included, stays below the limit.

    @param quote: The quote.
    @param strict: Whether to enforce the RFC 865 length limit.

    @return: The UTF-8 encoded quote followed by CRLF.
    """
    data = quote.encode("utf-8")
    if strict and len(data) > RFC865_MAX_LENGTH:
        # 3 bytes for the ellipsis, 2 for the terminator, 1 to spare
        data = data[: RFC865_MAX_LENGTH - 6] + _ELLIPSIS
    return data + _TERMINATOR


def _formatAddress(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class QOTD(protocol.Protocol):
    """
    Return a quote of the day (RFC 865) to a TCP client.

    @ivar requestID: The identifier of the request being served, or L{None}
        until one has been generated.
    @ivar client: The client address, as C{host:port}.
    """

    requestID: Optional[str] = None
    client = ""

    def connectionMade(self):
        context = self.factory.context
        peer = self.transport.getPeer()
        self.client = _formatAddress(peer.host, peer.port)
        try:
            self.requestID = context.newRequestID()
        except Exception:
            context.log.failure(
                "TCP: Could not identify request from {client}", client=self.client
            )
            self.transport.loseConnection()
            return

        context.log.info(
            "TCP Request {request} Received from {client}",
            request=self.requestID,
            client=self.client,
        )
        quote, index = context.nextQuote()
        self.transport.write(quote)
        context.log.info(
            "TCP Quote #{index} Served for {request}",
            index=index,
            request=self.requestID,
            client=self.client,
        )
        self.transport.loseConnection()

    def connectionLost(self, reason):
        if self.requestID is None:
            return
        self.factory.context.log.info(
            "Connection Closed for {request}",
            request=self.requestID,
            client=self.client,
        )


class QOTDFactory(policies.LimitTotalConnectionsFactory):
    """
    Build a L{QOTD} protocol for every TCP connection.

    Connections are independent of each other; the only thing they share is
    the read-only quote store on the context.

    @ivar context: The server context handed to every protocol.
    @ivar connectionLimit: The most connections served at once, or L{None}
        for no limit.  Connections past the limit are closed straight away.
    """

    protocol = QOTD

    def __init__(
        self, context: "ServerContext", connectionLimit: Optional[int] = None
    ) -> None:
        self.context = context
        self.connectionLimit = connectionLimit

    def buildProtocol(self, addr):
        p = policies.LimitTotalConnectionsFactory.buildProtocol(self, addr)
        if p is None:
            self.context.log.warn(
                "TCP: Refusing connection from {client}, "
                "{count} connections already open",
                client=_formatAddress(addr.host, addr.port),
                count=self.connectionCount,
            )
        return p


class QOTDDatagramProtocol(protocol.DatagramProtocol):
    """
    Return a quote of the day (RFC 865) in reply to every UDP datagram.

    Datagrams are answered one at a time, in the order they arrive.

    @ivar context: The server context.
    """

    def __init__(self, context: "ServerContext") -> None:
        self.context = context

    def datagramReceived(self, datagram: bytes, address: Tuple[str, int]) -> None:
        log = self.context.log
        client = _formatAddress(address[0], address[1])
        try:
            requestID = self.context.newRequestID()
        except Exception:
            log.failure("UDP: Could not identify request from {client}", client=client)
            return

        log.info(
            "UDP Request {request} Received from {client}",
            request=requestID,
            client=client,
        )
        quote, index = self.context.nextQuote()
        try:
            self.transport.write(quote, address)
        except Exception:
            log.failure(
                "UDP: Could not send quote #{index} for {request} to {client}",
                index=index,
                request=requestID,
                client=client,
            )
            return
        log.info(
            "UDP Quote #{index} Served for {request}",
            index=index,
            request=requestID,
            client=client,
        )

    def stopProtocol(self):
        self.context.log.info("UDP: Listener stopped")


__all__ = [
    "RFC865_MAX_LENGTH",
    "formatQuote",
    "QOTD",
    "QOTDFactory",
    "QOTDDatagramProtocol",
]
