"""
Brief: Tests for dnsblock.resolvers.reverse (ReverseResolver and ReverseCache).

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

import asyncio

import dns.exception
import dns.name
import dns.resolver
import pytest

from dnsblock.errors import ResolutionFailure
from dnsblock.resolvers.reverse import ReverseCache, ReverseResolver


class FakeAsyncResolver:
    """
    Brief: Stand-in for dns.asyncresolver.Resolver.resolve_address.

    Inputs:
      - outcomes: list of PTR target strings or exceptions, consumed in order

    Outputs:
      - ``await resolve_address(ip)`` -> list with one PTR-like rdata
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def resolve_address(self, ip):
        self.calls.append(ip)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome

        class _Ptr:
            target = dns.name.from_text(outcome)

        return [_Ptr()]


def test_reverse_resolver_success_strips_root_dot():
    """
    Brief: The PTR target is returned without its trailing dot.

    Inputs:
      - None

    Outputs:
      - None; asserts hostname
    """
    resolver = ReverseResolver(FakeAsyncResolver(["router.lan."]))
    assert asyncio.run(resolver.lookup("192.168.1.1")) == "router.lan"


@pytest.mark.parametrize(
    "error, code",
    [
        (dns.resolver.NXDOMAIN(qnames=[dns.name.from_text("1.1.168.192.in-addr.arpa")]), "NXDOMAIN"),
        (dns.resolver.NoAnswer(), "NODATA"),
        (dns.resolver.NoNameservers(), "SERVFAIL"),
    ],
)
def test_reverse_resolver_error_codes(error, code):
    """
    Brief: Resolver exceptions map to ResolutionFailure codes.

    Inputs:
      - error: exception raised by the resolver
      - code: expected failure code

    Outputs:
      - None; asserts code
    """
    resolver = ReverseResolver(FakeAsyncResolver([error]))
    with pytest.raises(ResolutionFailure) as excinfo:
        asyncio.run(resolver.lookup("192.168.1.1"))
    assert excinfo.value.code == code


def test_reverse_resolver_invalid_ip_and_timeouts():
    """
    Brief: Non-addresses fail INVALID without a query; timeouts use the retry
    budget before failing TIMEOUT.

    Inputs:
      - None

    Outputs:
      - None; asserts codes and call counts
    """
    fake = FakeAsyncResolver([])
    with pytest.raises(ResolutionFailure) as excinfo:
        asyncio.run(ReverseResolver(fake).lookup("not-an-ip"))
    assert excinfo.value.code == "INVALID"
    assert fake.calls == []

    fake = FakeAsyncResolver([dns.exception.Timeout(), dns.exception.Timeout()])
    with pytest.raises(ResolutionFailure) as excinfo:
        asyncio.run(ReverseResolver(fake, retries=1).lookup("10.0.0.9"))
    assert excinfo.value.code == "TIMEOUT"
    assert len(fake.calls) == 2

    fake = FakeAsyncResolver([dns.exception.Timeout(), "host9.lan."])
    assert asyncio.run(ReverseResolver(fake, retries=1).lookup("10.0.0.9")) == "host9.lan"


def test_cache_seed_is_served_without_lookup(fake_reverse):
    """
    Brief: Seeded addresses never reach the resolver.

    Inputs:
      - fake_reverse: FakeReverse factory

    Outputs:
      - None; asserts hostname and zero external lookups
    """
    resolver = fake_reverse()
    cache = ReverseCache(resolver, seed={"127.0.0.1": "localhost"})
    assert "127.0.0.1" in cache
    assert asyncio.run(cache.hostname("127.0.0.1")) == "localhost"
    assert cache.external_lookups == 0
    assert resolver.calls == []


def test_cache_stores_results_and_failures(fake_reverse):
    """
    Brief: Successes and failure renderings are both cached for the run.

    Inputs:
      - fake_reverse: FakeReverse factory

    Outputs:
      - None; asserts cached values and lookup counts
    """
    resolver = fake_reverse(
        {"10.0.0.5": "laptop.lan", "10.0.0.6": ResolutionFailure("10.0.0.6", "NXDOMAIN")}
    )
    cache = ReverseCache(resolver)

    async def run():
        first = [await cache.hostname(ip) for ip in ("10.0.0.5", "10.0.0.6")]
        second = [await cache.hostname(ip) for ip in ("10.0.0.5", "10.0.0.6")]
        return first, second

    first, second = asyncio.run(run())
    assert first == second == ["laptop.lan", "10.0.0.6 NXDOMAIN"]
    assert cache.get("10.0.0.6") == "10.0.0.6 NXDOMAIN"
    assert cache.external_lookups == 2
    assert resolver.calls == ["10.0.0.5", "10.0.0.6"]


def test_cache_deduplicates_inflight_lookups(fake_reverse):
    """
    Brief: Concurrent requests for one address share a single lookup.

    Inputs:
      - fake_reverse: FakeReverse factory

    Outputs:
      - None; asserts one resolver call
    """
    resolver = fake_reverse({"10.0.0.7": "tv.lan"}, delays={"10.0.0.7": 0.05})
    cache = ReverseCache(resolver)

    async def run():
        return await asyncio.gather(*(cache.hostname("10.0.0.7") for _ in range(5)))

    assert asyncio.run(run()) == ["tv.lan"] * 5
    assert resolver.calls == ["10.0.0.7"]
    assert cache.external_lookups == 1


def test_cache_is_bounded(fake_reverse):
    """
    Brief: The LRU capacity bounds the number of cached addresses.

    Inputs:
      - fake_reverse: FakeReverse factory

    Outputs:
      - None; asserts cache size
    """
    cache = ReverseCache(fake_reverse(), maxsize=2)

    async def run():
        for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
            await cache.hostname(ip)

    asyncio.run(run())
    assert len(cache) == 2
    assert "10.0.0.1" not in cache


def test_seeded_entries_survive_lru_eviction(fake_reverse):
    """
    Brief: Seeded addresses stay resolved after the LRU has cycled.

    Inputs:
      - fake_reverse: FakeReverse factory

    Outputs:
      - None; asserts seeded hostname and no lookup for the seeded address
    """
    resolver = fake_reverse()
    cache = ReverseCache(resolver, maxsize=2, seed={"127.0.0.1": "localhost"})

    async def run():
        for ip in ("10.0.0.1", "10.0.0.2"):
            await cache.hostname(ip)
        return await cache.hostname("127.0.0.1")

    assert asyncio.run(run()) == "localhost"
    assert resolver.calls == ["10.0.0.1", "10.0.0.2"]
    assert "127.0.0.1" in cache
    assert "10.0.0.1" in cache
