# -*- test-case-name: qotd.test.test_script -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The C{qotd} command: load quotes and serve them until shut down.

Exit status is 0 after a clean shutdown, 1 when the quotes cannot be loaded
or a port cannot be bound, and 2 for invalid options.
"""

import sys

from twisted.internet import defer, task
from twisted.internet.error import CannotListenError
from twisted.logger import (
    Logger,
    globalLogBeginner,
    jsonFileLogObserver,
    textFileLogObserver,
)
from twisted.python import usage

from qotd.context import ServerContext
from qotd.loader import QuoteSourceError, loadQuotes
from qotd.tap import Options, makeService

_log = Logger(namespace="qotd")


@defer.inlineCallbacks
def main(reactor, options, advertiser=None):
    """
    Serve quotes until the reactor shuts down.

    @param reactor: The reactor to run on.
    @param options: Parsed command line options.
    @type options: L{Options}
    @param advertiser: See L{makeService}.

    @return: A L{Deferred} firing once the server has stopped, or failing
        with L{SystemExit} if it could not start.
    """
    config = options.config
    try:
        store = yield loadQuotes(options["source"], reactor)
    except QuoteSourceError as e:
        _log.critical("{error}", error=e)
        raise SystemExit(1)
    _log.info(
        "Loaded {count} quotes from {source}",
        count=len(store),
        source=options["source"],
    )

    context = ServerContext.fromConfig(config, store)
    server = makeService(config, context, reactor=reactor, advertiser=advertiser)
    try:
        server.startService()
    except CannotListenError as e:
        _log.critical("Error listening: {error}", error=e)
        yield server.stopService()
        raise SystemExit(1)

    if config.udp:
        _log.info("UDP: QOTD Server Started on Port {port}", port=config.port)
    if config.tcp:
        _log.info("TCP: QOTD Server Started on Port {port}", port=config.port)

    stopped = defer.Deferred()

    def shutdown():
        d = server.stopService()
        d.addBoth(stopped.callback)
        return d

    reactor.addSystemEventTrigger("before", "shutdown", shutdown)
    yield stopped
    _log.info("QOTD Server Stopped")


def run(argv=None):
    """
    Run the C{qotd} command.

    @param argv: The command line arguments, without the program name;
        C{sys.argv[1:]} if L{None}.
    """
    if argv is None:
        argv = sys.argv[1:]
    options = Options()
    try:
        options.parseOptions(argv)
    except usage.UsageError as ue:
        sys.stderr.write(f"{options}\nqotd: {ue}\n")
        return 2

    if options["json-log"]:
        observer = jsonFileLogObserver(sys.stdout)
    else:
        observer = textFileLogObserver(sys.stdout)
    globalLogBeginner.beginLoggingTo([observer])
    task.react(main, [options])


__all__ = ["main", "run"]
