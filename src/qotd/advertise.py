# -*- test-case-name: qotd.test.test_advertise -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Announce a QOTD server on the local network.

The server only depends on L{IServiceAdvertiser}; L{MulticastDNSAdvertiser}
is the implementation used by default, a minimal multicast DNS responder
(RFC 6762) that answers DNS-SD (RFC 6763) queries for C{_qotd._tcp.local}.

The port in the advertisement is L{ADVERTISED_PORT}, a fixed number which
does not follow the port the server actually listens on.  A warning is
logged whenever the two differ.
"""

import socket
from typing import List, Optional, Tuple

from attrs import frozen
from zope.interface import Interface, implementer

from twisted.application import service
from twisted.internet import defer, protocol
from twisted.logger import Logger, LogLevel
from twisted.names import dns

from qotd.config import ServerConfig

MDNS_ADDRESS = "224.0.0.251"
MDNS_PORT = 5353

SERVICE_TYPE = "_qotd._tcp"
SERVICES_META_QUERY = b"_services._dns-sd._udp.local"
ADVERTISED_PORT = 3333
ADVERTISED_ADDRESS = "0.0.0.0"
SERVICE_DESCRIPTION = "Local web server"

DEFAULT_TTL = 120
LEGACY_UNICAST_TTL = 10


class IServiceAdvertiser(Interface):
    """
    Something which can announce a running server on the network.
    """

    def start(config):
        """
        Begin advertising a server.

        @param config: The configuration the server runs with.
        @type config: L{ServerConfig}

        @return: An opaque handle to pass to L{stop}.
        """

    def stop(handle):
        """
        Withdraw an advertisement.

        @param handle: The result of an earlier L{start}.

        @return: A L{Deferred} firing once the advertisement is withdrawn.
        """


@frozen
class ServiceRecords:
    """
    The DNS records which describe one QOTD service instance.

    @ivar hostname: The host name, without any domain.
    @ivar port: The port advertised in the SRV record.
    @ivar address: The address advertised in the A record.
    @ivar description: The text of the TXT record.
    """

    hostname: str
    port: int = ADVERTISED_PORT
    address: str = ADVERTISED_ADDRESS
    description: str = SERVICE_DESCRIPTION
    domain: str = "local"

    @property
    def serviceName(self) -> bytes:
        return f"{SERVICE_TYPE}.{self.domain}".encode("utf-8")

    @property
    def instanceName(self) -> bytes:
        return self.hostname.encode("utf-8") + b"." + self.serviceName

    @property
    def targetName(self) -> bytes:
        return f"{self.hostname}.{self.domain}".encode("utf-8")

    def _ptr(self, ttl):
        return dns.RRHeader(
            self.serviceName,
            dns.PTR,
            dns.IN,
            ttl,
            dns.Record_PTR(self.instanceName, ttl),
            auth=True,
        )

    def _srv(self, ttl):
        return dns.RRHeader(
            self.instanceName,
            dns.SRV,
            dns.IN,
            ttl,
            dns.Record_SRV(0, 0, self.port, self.targetName, ttl),
            auth=True,
        )

    def _txt(self, ttl):
        return dns.RRHeader(
            self.instanceName,
            dns.TXT,
            dns.IN,
            ttl,
            dns.Record_TXT(self.description.encode("utf-8"), ttl=ttl),
            auth=True,
        )

    def _a(self, ttl):
        return dns.RRHeader(
            self.targetName,
            dns.A,
            dns.IN,
            ttl,
            dns.Record_A(self.address, ttl),
            auth=True,
        )

    def allRecords(self, ttl: int = DEFAULT_TTL) -> List[dns.RRHeader]:
        """
        Every record, for announcements and goodbyes.
        """
        return [self._ptr(ttl), self._srv(ttl), self._txt(ttl), self._a(ttl)]

    def lookup(
        self, query: dns.Query, ttl: int = DEFAULT_TTL
    ) -> Tuple[List[dns.RRHeader], List[dns.RRHeader]]:
        """
        Answer one question.

        @return: The answer records and the additional records; both empty
            if the question is not about this service.
        """
        name = query.name.name.lower()
        qtype = query.type
        anything = dns.ALL_RECORDS

        if name == SERVICES_META_QUERY and qtype in (dns.PTR, anything):
            ptr = dns.RRHeader(
                SERVICES_META_QUERY,
                dns.PTR,
                dns.IN,
                ttl,
                dns.Record_PTR(self.serviceName, ttl),
            )
            return [ptr], []
        if name == self.serviceName.lower() and qtype in (dns.PTR, anything):
            return [self._ptr(ttl)], [self._srv(ttl), self._txt(ttl), self._a(ttl)]
        if name == self.instanceName.lower():
            if qtype == dns.SRV:
                return [self._srv(ttl)], [self._a(ttl)]
            if qtype == dns.TXT:
                return [self._txt(ttl)], []
            if qtype == anything:
                return [self._srv(ttl), self._txt(ttl)], [self._a(ttl)]
        if name == self.targetName.lower() and qtype in (dns.A, anything):
            return [self._a(ttl)], []
        return [], []


class MulticastDNSResponder(protocol.DatagramProtocol):
    """
    Answer multicast DNS questions about one service instance.

    Queries from port 5353 are answered on the multicast group; queries from
    any other port come from simple resolvers and are answered directly, with
    the query id and questions echoed back.

    @ivar records: The records to serve.
    """

    _log = Logger()

    def __init__(self, records: ServiceRecords) -> None:
        self.records = records

    def startProtocol(self):
        d = self.transport.joinGroup(MDNS_ADDRESS)
        d.addErrback(
            lambda f: self._log.failure(
                "mDNS: Could not join multicast group {group}",
                f,
                level=LogLevel.warn,
                group=MDNS_ADDRESS,
            )
        )
        self.transport.setTTL(255)
        try:
            self.announce()
        except Exception:
            self._log.failure(
                "mDNS: Could not announce {instance}",
                level=LogLevel.warn,
                instance=self.records.instanceName,
            )

    def announce(self, ttl: int = DEFAULT_TTL) -> None:
        """
        Send every record to the multicast group, unsolicited.
        """
        message = dns.Message(answer=1, auth=1)
        message.answers = self.records.allRecords(ttl)
        self.transport.write(message.toStr(), (MDNS_ADDRESS, MDNS_PORT))

    def goodbye(self) -> None:
        """
        Tell the network the records are going away.
        """
        self.announce(ttl=0)

    def datagramReceived(self, data, address):
        message = dns.Message()
        try:
            message.fromStr(data)
        except Exception:
            self._log.debug("mDNS: Ignoring malformed packet from {host}", host=address[0])
            return
        if message.answer:
            return

        legacy = address[1] != MDNS_PORT
        ttl = LEGACY_UNICAST_TTL if legacy else DEFAULT_TTL
        answers, additional = [], []
        for query in message.queries:
            found, extra = self.records.lookup(query, ttl)
            answers.extend(found)
            additional.extend(r for r in extra if r not in additional)
        if not answers:
            return

        reply = dns.Message(id=message.id if legacy else 0, answer=1, auth=1)
        reply.answers = answers
        reply.additional = additional
        if legacy:
            reply.queries = message.queries
            self.transport.write(reply.toStr(), address)
        else:
            self.transport.write(reply.toStr(), (MDNS_ADDRESS, MDNS_PORT))


@frozen
class _Advertisement:
    port: object
    responder: MulticastDNSResponder


@implementer(IServiceAdvertiser)
class MulticastDNSAdvertiser:
    """
    Advertise a QOTD server with multicast DNS.

    @ivar _reactor: The reactor to listen with.
    @ivar _hostname: The instance name; the local host name if L{None}.
    """

    _log = Logger()

    def __init__(self, reactor=None, hostname: Optional[str] = None) -> None:
        if reactor is None:
            from twisted.internet import reactor
        self._reactor = reactor
        self._hostname = hostname

    def start(self, config: ServerConfig) -> _Advertisement:
        hostname = self._hostname or socket.gethostname().split(".")[0]
        if config.port != ADVERTISED_PORT:
            self._log.warn(
                "mDNS: Advertising port {advertised}, "
                "but the server listens on port {port}",
                advertised=ADVERTISED_PORT,
                port=config.port,
            )
        responder = MulticastDNSResponder(ServiceRecords(hostname))
        port = self._reactor.listenMulticast(MDNS_PORT, responder, listenMultiple=True)
        self._log.info(
            "mDNS: Advertising {service} as {instance}",
            service=SERVICE_TYPE,
            instance=hostname,
        )
        return _Advertisement(port, responder)

    def stop(self, handle: _Advertisement) -> defer.Deferred:
        try:
            handle.responder.goodbye()
        except Exception:
            self._log.failure("mDNS: Could not send goodbye", level=LogLevel.warn)
        return defer.maybeDeferred(handle.port.stopListening)


class AdvertisementService(service.Service):
    """
    Keep a server advertised while this service runs.

    Failing to advertise is not fatal: the failure is logged and the server
    goes on without an advertisement.

    @ivar advertiser: The L{IServiceAdvertiser} provider.
    @ivar config: The configuration of the advertised server.
    """

    _log = Logger()
    _handle = None

    def __init__(self, advertiser: IServiceAdvertiser, config: ServerConfig) -> None:
        self.advertiser = advertiser
        self.config = config

    def startService(self):
        service.Service.startService(self)
        try:
            self._handle = self.advertiser.start(self.config)
        except Exception:
            self._log.failure("Could not advertise the server, continuing without")

    def stopService(self):
        service.Service.stopService(self)
        handle, self._handle = self._handle, None
        if handle is None:
            return defer.succeed(None)
        return self.advertiser.stop(handle)


__all__ = [
    "ADVERTISED_PORT",
    "IServiceAdvertiser",
    "ServiceRecords",
    "MulticastDNSResponder",
    "MulticastDNSAdvertiser",
    "AdvertisementService",
]
