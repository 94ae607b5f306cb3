# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Tests for L{qotd.advertise}.
"""

import socket

from zope.interface.verify import verifyObject

from twisted.internet import defer
from twisted.internet.testing import FakeDatagramTransport
from twisted.logger import Logger
from twisted.names import dns
from twisted.trial import unittest

from qotd.advertise import (
    ADVERTISED_PORT,
    MDNS_ADDRESS,
    MDNS_PORT,
    AdvertisementService,
    IServiceAdvertiser,
    MulticastDNSAdvertiser,
    MulticastDNSResponder,
    ServiceRecords,
)
from qotd.config import ServerConfig
from qotd.test.test_tap import FakeAdvertiser


def _query(name, type, id=0):
    message = dns.Message(id=id)
    message.queries = [dns.Query(name, type, dns.IN)]
    return message.toStr()


def _parse(data):
    message = dns.Message()
    message.fromStr(data)
    return message


class _FakeMulticastPort(FakeDatagramTransport):
    def __init__(self):
        FakeDatagramTransport.__init__(self)
        self.groups = []
        self.ttl = None
        self.listening = True

    def joinGroup(self, addr, interface=""):
        self.groups.append(addr)
        return defer.succeed(None)

    def setTTL(self, ttl):
        self.ttl = ttl

    def stopListening(self):
        self.listening = False


class _MulticastReactor:
    """
    Just enough of a reactor to listen for multicast.
    """

    def __init__(self):
        self.listened = []

    def listenMulticast(self, port, protocol, interface="", listenMultiple=False):
        transport = _FakeMulticastPort()
        self.listened.append((port, protocol, listenMultiple))
        protocol.makeConnection(transport)
        return transport


class _UnroutablePort(_FakeMulticastPort):
    def write(self, packet, addr=None):
        raise OSError("Network is unreachable")


class _UnroutableReactor(_MulticastReactor):
    """
    A reactor whose multicast ports bind but can't send.
    """

    def listenMulticast(self, port, protocol, interface="", listenMultiple=False):
        transport = _UnroutablePort()
        self.listened.append((port, protocol, listenMultiple))
        protocol.makeConnection(transport)
        return transport


class _BrokenReactor:
    def listenMulticast(self, *args, **kwargs):
        raise OSError("no multicast here")


class ServiceRecordsTests(unittest.TestCase):
    """
    Tests for L{ServiceRecords}.
    """

    def setUp(self):
        self.records = ServiceRecords("quotes")

    def test_names(self):
        """
        The service, instance and target names are under C{local}.
        """
        self.assertEqual(self.records.serviceName, b"_qotd._tcp.local")
        self.assertEqual(self.records.instanceName, b"quotes._qotd._tcp.local")
        self.assertEqual(self.records.targetName, b"quotes.local")

    def test_fixedPort(self):
        """
        The advertised port is the fixed constant, 3333.
        """
        self.assertEqual(ADVERTISED_PORT, 3333)
        srv = self.records.allRecords()[1]
        self.assertEqual(srv.payload.port, ADVERTISED_PORT)

    def test_browse(self):
        """
        A PTR question for the service type is answered with the instance,
        with its SRV, TXT and A records as additional records.
        """
        answers, additional = self.records.lookup(
            dns.Query(b"_qotd._tcp.local", dns.PTR, dns.IN)
        )
        [ptr] = answers
        self.assertEqual(ptr.payload.name.name, b"quotes._qotd._tcp.local")
        self.assertEqual([r.type for r in additional], [dns.SRV, dns.TXT, dns.A])
        txt = additional[1]
        self.assertEqual(txt.payload.data, [b"Local web server"])

    def test_caseInsensitive(self):
        """
        Names in questions are matched without regard to case.
        """
        answers, _ = self.records.lookup(dns.Query(b"_QOTD._tcp.LOCAL", dns.PTR))
        self.assertEqual(len(answers), 1)

    def test_instance(self):
        """
        SRV and TXT questions about the instance are answered.
        """
        name = b"quotes._qotd._tcp.local"
        answers, _ = self.records.lookup(dns.Query(name, dns.SRV))
        self.assertEqual([r.type for r in answers], [dns.SRV])
        answers, _ = self.records.lookup(dns.Query(name, dns.TXT))
        self.assertEqual([r.type for r in answers], [dns.TXT])
        answers, _ = self.records.lookup(dns.Query(name, dns.ALL_RECORDS))
        self.assertEqual([r.type for r in answers], [dns.SRV, dns.TXT])

    def test_servicesMetaQuery(self):
        """
        Browsing for all service types finds C{_qotd._tcp}.
        """
        answers, _ = self.records.lookup(
            dns.Query(b"_services._dns-sd._udp.local", dns.PTR)
        )
        self.assertEqual(answers[0].payload.name.name, b"_qotd._tcp.local")

    def test_unrelated(self):
        """
        Questions about other services have no answers.
        """
        self.assertEqual(
            self.records.lookup(dns.Query(b"_http._tcp.local", dns.PTR)), ([], [])
        )


class MulticastDNSResponderTests(unittest.TestCase):
    """
    Tests for L{MulticastDNSResponder}.
    """

    def setUp(self):
        self.responder = MulticastDNSResponder(ServiceRecords("quotes"))
        self.transport = _FakeMulticastPort()
        self.responder.makeConnection(self.transport)

    def test_start(self):
        """
        Starting joins the mDNS group and announces every record.
        """
        self.assertEqual(self.transport.groups, [MDNS_ADDRESS])
        self.assertEqual(self.transport.ttl, 255)
        [(data, address)] = self.transport.written
        self.assertEqual(address, (MDNS_ADDRESS, MDNS_PORT))
        message = _parse(data)
        self.assertTrue(message.answer)
        self.assertEqual(len(message.answers), 4)

    def test_multicastQuery(self):
        """
        A query from port 5353 is answered on the multicast group.
        """
        del self.transport.written[:]
        self.responder.datagramReceived(
            _query(b"_qotd._tcp.local", dns.PTR), ("192.0.2.1", MDNS_PORT)
        )
        [(data, address)] = self.transport.written
        self.assertEqual(address, (MDNS_ADDRESS, MDNS_PORT))
        message = _parse(data)
        self.assertEqual(message.id, 0)
        self.assertEqual(message.answers[0].type, dns.PTR)
        self.assertEqual(message.answers[0].ttl, 120)

    def test_legacyQuery(self):
        """
        A query from another port gets a direct reply echoing its id and
        question, with short TTLs.
        """
        del self.transport.written[:]
        client = ("192.0.2.1", 40000)
        self.responder.datagramReceived(
            _query(b"quotes._qotd._tcp.local", dns.SRV, id=99), client
        )
        [(data, address)] = self.transport.written
        self.assertEqual(address, client)
        message = _parse(data)
        self.assertEqual(message.id, 99)
        self.assertEqual(len(message.queries), 1)
        self.assertEqual(message.answers[0].payload.port, ADVERTISED_PORT)
        self.assertEqual(message.answers[0].ttl, 10)

    def test_ignored(self):
        """
        Unrelated questions, responses and garbage get no reply.
        """
        del self.transport.written[:]
        self.responder.datagramReceived(
            _query(b"_http._tcp.local", dns.PTR), ("192.0.2.1", MDNS_PORT)
        )
        response = dns.Message(answer=1)
        self.responder.datagramReceived(response.toStr(), ("192.0.2.1", MDNS_PORT))
        self.responder.datagramReceived(b"\x00", ("192.0.2.1", MDNS_PORT))
        self.assertEqual(self.transport.written, [])

    def test_goodbye(self):
        """
        A goodbye repeats every record with a zero TTL.
        """
        del self.transport.written[:]
        self.responder.goodbye()
        [(data, _)] = self.transport.written
        self.assertEqual([r.ttl for r in _parse(data).answers], [0, 0, 0, 0])


class MulticastDNSAdvertiserTests(unittest.TestCase):
    """
    Tests for L{MulticastDNSAdvertiser}.
    """

    def setUp(self):
        self.reactor = _MulticastReactor()
        self.advertiser = MulticastDNSAdvertiser(self.reactor, hostname="quotes")

    def test_interface(self):
        """
        L{MulticastDNSAdvertiser} provides L{IServiceAdvertiser}.
        """
        self.assertTrue(verifyObject(IServiceAdvertiser, self.advertiser))

    def test_startStop(self):
        """
        Starting listens on the mDNS port, sharing it with other responders;
        stopping says goodbye and stops listening.
        """
        handle = self.advertiser.start(ServerConfig.create())
        [(port, protocol, listenMultiple)] = self.reactor.listened
        self.assertEqual(port, MDNS_PORT)
        self.assertTrue(listenMultiple)
        self.assertEqual(protocol.records.hostname, "quotes")

        transport = protocol.transport
        self.successResultOf(self.advertiser.stop(handle))
        self.assertFalse(transport.listening)
        self.assertEqual(len(transport.written), 2)

    def test_portMismatchWarning(self):
        """
        A warning is logged when the server does not listen on the
        advertised port, and the advertisement still carries the constant.
        """
        events = []
        self.patch(MulticastDNSAdvertiser, "_log", Logger(observer=events.append))
        self.advertiser.start(ServerConfig.create(port=17))
        warning = events[0]
        self.assertEqual((warning["advertised"], warning["port"]), (3333, 17))
        [(_, protocol, _)] = self.reactor.listened
        self.assertEqual(protocol.records.port, ADVERTISED_PORT)

    def test_announceFailure(self):
        """
        If the announcement can't be sent once the port is bound, the
        failure is logged and a handle is still returned, so stopping
        releases the port.
        """
        events = []
        log = Logger(observer=events.append)
        self.patch(MulticastDNSResponder, "_log", log)
        self.patch(MulticastDNSAdvertiser, "_log", log)
        advertiser = MulticastDNSAdvertiser(_UnroutableReactor(), hostname="quotes")
        handle = advertiser.start(ServerConfig.create())
        self.assertIsNotNone(handle)
        [failure] = [e["log_failure"] for e in events if "log_failure" in e]
        self.assertTrue(failure.check(OSError))

        self.successResultOf(advertiser.stop(handle))
        self.assertFalse(handle.port.listening)

    def test_defaultHostname(self):
        """
        Without a host name the local one is used, without its domain.
        """
        self.patch(socket, "gethostname", lambda: "box.example.com")
        advertiser = MulticastDNSAdvertiser(self.reactor)
        advertiser.start(ServerConfig.create())
        [(_, protocol, _)] = self.reactor.listened
        self.assertEqual(protocol.records.hostname, "box")


class AdvertisementServiceTests(unittest.TestCase):
    """
    Tests for L{AdvertisementService}.
    """

    def setUp(self):
        self.advertiser = FakeAdvertiser()
        self.config = ServerConfig.create()
        self.service = AdvertisementService(self.advertiser, self.config)

    def test_lifecycle(self):
        """
        The advertisement starts with the service and is withdrawn when the
        service stops.
        """
        self.service.startService()
        [(config, handle)] = self.advertiser.started
        self.assertIs(config, self.config)
        self.assertTrue(self.service.running)

        self.service.stopService()
        self.assertEqual(self.advertiser.stopped, [handle])
        self.assertFalse(self.service.running)

    def test_stopWithoutStart(self):
        """
        Stopping a service which never advertised withdraws nothing.
        """
        self.successResultOf(self.service.stopService())
        self.assertEqual(self.advertiser.stopped, [])

    def test_startFailure(self):
        """
        If advertising fails the failure is logged and the service runs on.
        """
        events = []
        self.patch(AdvertisementService, "_log", Logger(observer=events.append))
        service = AdvertisementService(
            MulticastDNSAdvertiser(_BrokenReactor(), hostname="quotes"),
            self.config,
        )
        service.startService()
        self.assertTrue(service.running)
        [failure] = [e["log_failure"] for e in events if "log_failure" in e]
        self.assertTrue(failure.check(OSError))
        self.successResultOf(service.stopService())
