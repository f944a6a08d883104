"""Reverse (PTR) lookups for query-log client addresses."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Dict, Mapping, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver
from cachetools import LRUCache

from ..errors import ResolutionFailure
from . import make_async_resolver

logger = logging.getLogger(__name__)


class ReverseResolver:
    """Brief: Asynchronous PTR lookup with a timeout and retry budget.

    Inputs:
      - resolver: Optional dns.asyncresolver.Resolver.
      - nameservers / timeout: Used to build a resolver when none is given.
      - retries: Extra attempts after a timeout.

    Outputs:
      - ``await lookup(ip)`` -> hostname without the trailing dot.

    Raises:
      - ResolutionFailure with code INVALID, NXDOMAIN, NODATA, SERVFAIL or
        TIMEOUT.
    """

    def __init__(
        self,
        resolver: Optional[dns.asyncresolver.Resolver] = None,
        *,
        nameservers=None,
        timeout: float = 2.0,
        retries: int = 1,
    ) -> None:
        self._resolver = resolver or make_async_resolver(nameservers, timeout)
        self.retries = max(0, int(retries))

    async def lookup(self, ip: str) -> str:
        try:
            ipaddress.ip_address(ip)
        except ValueError as exc:
            raise ResolutionFailure(ip, "INVALID") from exc

        for attempt in range(self.retries + 1):
            try:
                answer = await self._resolver.resolve_address(ip)
            except dns.resolver.NXDOMAIN as exc:
                raise ResolutionFailure(ip, "NXDOMAIN") from exc
            except dns.resolver.NoAnswer as exc:
                raise ResolutionFailure(ip, "NODATA") from exc
            except dns.exception.Timeout:
                logger.debug("Timeout on reverse lookup of %s (attempt %d)", ip, attempt + 1)
                continue
            except dns.exception.DNSException as exc:
                raise ResolutionFailure(ip, "SERVFAIL", str(exc)) from exc
            return answer[0].target.to_text(omit_final_dot=True)
        raise ResolutionFailure(ip, "TIMEOUT")


class ReverseCache:
    """Brief: IP -> hostname cache with single-flight lookups.

    Inputs:
      - resolver: Object with ``async lookup(ip) -> str`` (ReverseResolver).
      - maxsize: LRU capacity; entries otherwise live for the whole run.
      - seed: Optional mapping of pre-resolved addresses. Seeded entries sit
        outside the LRU and are never evicted.

    Outputs:
      - ``await hostname(ip)`` -> hostname or the failure text
        ``"<ip> <error-code>"``. Never raises ResolutionFailure.

    Notes:
      - Failures are cached like successes.
      - A lookup for an address already in flight awaits the same task rather
        than querying again.
    """

    def __init__(
        self,
        resolver,
        maxsize: int = 4096,
        seed: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._resolver = resolver
        self._cache: LRUCache = LRUCache(maxsize=max(1, int(maxsize)))
        self._seeded: Dict[str, str] = {}
        self._inflight: Dict[str, "asyncio.Future[str]"] = {}
        self.external_lookups = 0
        if seed:
            self.seed(seed)

    def seed(self, mapping: Mapping[str, str]) -> None:
        for ip, hostname in mapping.items():
            self._seeded[str(ip)] = str(hostname)

    def get(self, ip: str) -> Optional[str]:
        if ip in self._seeded:
            return self._seeded[ip]
        return self._cache.get(ip)

    def __contains__(self, ip: str) -> bool:
        return ip in self._seeded or ip in self._cache

    def __len__(self) -> int:
        return len(self._seeded) + len(self._cache)

    async def hostname(self, ip: str) -> str:
        cached = self.get(ip)
        if cached is not None:
            return cached

        task = self._inflight.get(ip)
        if task is None:
            task = asyncio.ensure_future(self._resolve(ip))
            self._inflight[ip] = task
            task.add_done_callback(lambda _t, key=ip: self._inflight.pop(key, None))
        # Shielded so one cancelled waiter does not cancel the shared lookup.
        return await asyncio.shield(task)

    async def _resolve(self, ip: str) -> str:
        self.external_lookups += 1
        try:
            hostname = await self._resolver.lookup(ip)
        except ResolutionFailure as exc:
            logger.warning("Reverse lookup failed: %s", exc)
            hostname = exc.render()
        self._cache[ip] = hostname
        return hostname
