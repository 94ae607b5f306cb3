# -*- test-case-name: qotd.test.test_tap -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Support for configuring and creating a QOTD server.
"""

from twisted.application import internet, service
from twisted.python import usage

from qotd.advertise import AdvertisementService, MulticastDNSAdvertiser
from qotd.config import DEFAULT_PORT, ServerConfig
from qotd.wire import RFC865_MAX_LENGTH, QOTDDatagramProtocol, QOTDFactory


def _positiveInteger(value):
    number = int(value)
    if number < 1:
        raise ValueError(f"{value} is not a positive integer")
    return number


class Options(usage.Options):
    """
    Command line options for a QOTD server.

    @ivar config: The validated L{ServerConfig}, available once parsing is
        done.
    """

    synopsis = "Usage: qotd [options] <quote file or URL>"
    longdesc = """
    Run a Quote of the Day server (RFC 865).

    Quotes are read once at startup from a local file or fetched from an
    http or https URL. Quotes are separated by a line holding only "%".

    In strict mode the server listens on port 17 over both TCP and UDP,
    whatever other options say, and shortens quotes longer than 512 bytes.
    """

    optParameters = [
        ["port", "p", DEFAULT_PORT, "port to bind the server to", usage.portCoerce],
        ["interface", "i", "", "local address to bind to (default: all)"],
        [
            "max-connections",
            None,
            None,
            "most TCP connections served at once (default: no limit)",
            _positiveInteger,
        ],
    ]

    optFlags = [
        ["strict", None, "quotes served in RFC 865 strict mode"],
        ["no-tcp", None, "server does not listen on tcp"],
        ["no-udp", None, "server does not listen on udp"],
        ["no-mdns", None, "server does not advertise over mdns"],
        ["json-log", None, "log events as JSON, one per line"],
    ]

    compData = usage.Completions(
        optActions={"interface": usage.CompleteNetInterfaces()},
        extraActions=[usage.CompleteFiles(descr="quote file or URL")],
    )

    config = None

    def parseArgs(self, *args):
        if len(args) != 1:
            raise usage.UsageError(
                "Server must be started with a path to a file with quotes"
            )
        self["source"] = args[0]

    def postOptions(self):
        """
        Build the server configuration.

        @raise UsageError: When the set of options is invalid.
        """
        try:
            self.config = ServerConfig.create(
                port=self["port"],
                strict=bool(self["strict"]),
                tcp=not self["no-tcp"],
                udp=not self["no-udp"],
                advertise=not self["no-mdns"],
                interface=self["interface"],
                maxConnections=self["max-connections"],
            )
        except ValueError as e:
            raise usage.UsageError(str(e))


def makeService(config, context, reactor=None, advertiser=None):
    """
    Build the services making up a QOTD server.

    The advertisement comes first so the server is announced before either
    listener starts; stopping the returned service closes the listeners and
    then withdraws the advertisement.

    @param config: How to listen.
    @type config: L{ServerConfig}

    @param context: The state shared by every handler.
    @type context: L{ServerContext <qotd.context.ServerContext>}

    @param reactor: The reactor to listen with; the global reactor if
        L{None}.

    @param advertiser: The L{IServiceAdvertiser
        <qotd.advertise.IServiceAdvertiser>} to announce the server with.
        Multicast DNS if L{None}.

    @rtype: L{MultiService <twisted.application.service.MultiService>}
    """
    s = service.MultiService()

    if config.advertise:
        if advertiser is None:
            advertiser = MulticastDNSAdvertiser(reactor)
        advertisement = AdvertisementService(advertiser, config)
        advertisement.setName("advertisement")
        advertisement.setServiceParent(s)

    if config.udp:
        udp = internet.UDPServer(
            config.port,
            QOTDDatagramProtocol(context),
            interface=config.interface,
            maxPacketSize=RFC865_MAX_LENGTH,
            reactor=reactor,
        )
        udp.setName("udp")
        udp.setServiceParent(s)

    if config.tcp:
        tcp = internet.TCPServer(
            config.port,
            QOTDFactory(context, config.maxConnections),
            interface=config.interface,
            reactor=reactor,
        )
        tcp.setName("tcp")
        tcp.setServiceParent(s)

    return s


__all__ = ["Options", "makeService"]
