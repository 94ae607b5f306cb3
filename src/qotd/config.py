# -*- test-case-name: qotd.test.test_tap -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Server configuration.
"""

from typing import Optional

from attrs import frozen

DEFAULT_PORT = 3333
RFC865_PORT = 17


@frozen
class ServerConfig:
    """
    How a QOTD server listens.

    @ivar port: The TCP and UDP port number to listen on.
    @ivar strict: Serve in RFC 865 strict mode: port 17, both transports,
        responses capped at 512 bytes.
    @ivar tcp: Whether to listen on TCP.
    @ivar udp: Whether to listen on UDP.
    @ivar advertise: Whether to announce the server over multicast DNS.
    @ivar interface: The local address to bind to; the empty string means
        every IPv4 interface.
    @ivar maxConnections: The most TCP connections handled at once, or
        L{None} for no limit.
    """

    port: int = DEFAULT_PORT
    strict: bool = False
    tcp: bool = True
    udp: bool = True
    advertise: bool = True
    interface: str = ""
    maxConnections: Optional[int] = None

    def __attrs_post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        if not (self.tcp or self.udp):
            raise ValueError(
                "Server not started on TCP or UDP, "
                "don't pass both --no-tcp and --no-udp"
            )
        if self.maxConnections is not None and self.maxConnections < 1:
            raise ValueError("The connection limit must be at least 1")

    @classmethod
    def create(
        cls,
        port: int = DEFAULT_PORT,
        strict: bool = False,
        tcp: bool = True,
        udp: bool = True,
        advertise: bool = True,
        interface: str = "",
        maxConnections: Optional[int] = None,
    ) -> "ServerConfig":
        """
        Build a configuration, applying strict mode: a strict server always
        listens on port 17 with both transports, whatever else was asked.
        """
        if strict:
            port = RFC865_PORT
            tcp = udp = True
        return cls(
            port=port,
            strict=strict,
            tcp=tcp,
            udp=udp,
            advertise=advertise,
            interface=interface,
            maxConnections=maxConnections,
        )


__all__ = ["DEFAULT_PORT", "RFC865_PORT", "ServerConfig"]
