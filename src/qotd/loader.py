# -*- test-case-name: qotd.test.test_loader -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Load quotes from a local file or an HTTP(S) URL.
"""

from hyperlink import URL, URLParseError

from twisted.internet import defer
from twisted.logger import Logger
from twisted.python.failure import Failure
from twisted.python.filepath import FilePath
from twisted.web.client import Agent, RedirectAgent, readBody
from twisted.web.http_headers import Headers

from qotd.store import QuoteStore

_log = Logger()

REMOTE_SCHEMES = ("http", "https")


class QuoteSourceError(Exception):
    """
    Quotes could not be loaded from a source.

    @ivar source: The file path or URL that failed.
    @ivar reason: A description of what went wrong.
    """

    def __init__(self, source: str, reason: str) -> None:
        Exception.__init__(self, source, reason)
        self.source = source
        self.reason = reason

    def __str__(self) -> str:
        return f"Could not load quotes from {self.source}: {self.reason}"


class UnexpectedStatus(Exception):
    """
    A remote quote source answered with something other than success.
    """

    def __init__(self, code: int, phrase: bytes) -> None:
        Exception.__init__(self, code, phrase)
        self.code = code
        self.phrase = phrase

    def __str__(self) -> str:
        return f"HTTP {self.code} {self.phrase.decode('latin-1')}"


def isRemoteSource(source: str) -> bool:
    """
    Decide whether a quote source names a URL to fetch or a local file.

    @return: C{True} if C{source} is an C{http} or C{https} URL.
    """
    try:
        url = URL.from_text(source)
    except (URLParseError, ValueError):
        return False
    return url.scheme.lower() in REMOTE_SCHEMES


def _readFile(source: str) -> bytes:
    return FilePath(source).getContent()


def _fetch(source: str, agent) -> defer.Deferred:
    """
    Get the body of C{source} with a single GET request.
    """

    def checkStatus(response):
        if not 200 <= response.code < 300:
            raise UnexpectedStatus(response.code, response.phrase)
        return readBody(response)

    uri = URL.from_text(source).to_uri().to_text().encode("ascii")
    d = defer.maybeDeferred(
        agent.request, b"GET", uri, Headers({b"User-Agent": [b"qotd"]})
    )
    d.addCallback(checkStatus)
    return d


def loadQuotes(source: str, reactor=None, agent=None) -> defer.Deferred:
    """
    Load the quotes in C{source}.

    @param source: A filesystem path, or an C{http}/C{https} URL.
    @param reactor: The reactor for remote requests.  The global reactor if
        L{None}.
    @param agent: The L{IAgent} provider for remote requests.  A redirect
        following L{Agent} on C{reactor} if L{None}.

    @return: A L{Deferred} firing with a L{QuoteStore}, or failing with
        L{QuoteSourceError}.
    """
    if isRemoteSource(source):
        if agent is None:
            if reactor is None:
                from twisted.internet import reactor
            agent = RedirectAgent(Agent(reactor))
        _log.info("Fetching quotes from {source}", source=source)
        d = _fetch(source, agent)
    else:
        _log.info("Reading quotes from {source}", source=source)
        d = defer.maybeDeferred(_readFile, source)

    def parse(data: bytes) -> QuoteStore:
        return QuoteStore.fromText(data.decode("utf-8"))

    def wrap(failure: Failure) -> None:
        raise QuoteSourceError(source, failure.getErrorMessage()) from failure.value

    d.addCallback(parse)
    d.addErrback(wrap)
    return d


__all__ = ["QuoteSourceError", "isRemoteSource", "loadQuotes"]
