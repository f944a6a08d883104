"""CNAME chain walking.

A trusted site is often served from CDN or tracking hostnames reached through
CNAME records. ``AliasResolver.resolve_chain`` returns every name visited on
the way from a domain to its address record so that the loader can allow all
of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

import dns.exception
import dns.message
import dns.name
import dns.rdatatype
import dns.resolver

from ..domain import Domain
from ..errors import InvalidDomainSyntax, ResolutionFailure
from . import make_resolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 16


@dataclass(frozen=True)
class HopAnswer:
    """What the resolver knows about one name: an address, an alias, or neither."""

    has_address: bool = False
    cname: Optional[str] = None


class RecordLookup(Protocol):
    def lookup(self, name: str) -> HopAnswer: ...


def _hop_from_response(qname: dns.name.Name, response: dns.message.Message) -> HopAnswer:
    # Only records owned by the queried name count; later links of the chain
    # are examined on their own hop.
    for rrset in response.answer:
        if rrset.name != qname:
            continue
        if rrset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
            return HopAnswer(has_address=True)
        if rrset.rdtype == dns.rdatatype.CNAME:
            return HopAnswer(cname=rrset[0].target.to_text(omit_final_dot=True))
    return HopAnswer()


class DnsPythonLookup:
    """Brief: RecordLookup backed by a dnspython resolver.

    Inputs:
      - resolver: Optional dns.resolver.Resolver (built from nameservers/timeout
        when omitted).
      - nameservers: Optional list of nameserver IPs.
      - timeout: Per-attempt lifetime in seconds.
      - retries: Extra attempts after a timeout.

    Outputs:
      - lookup(name) -> HopAnswer; raises ResolutionFailure on SERVFAIL or
        when the retry budget is exhausted.
    """

    def __init__(
        self,
        resolver: Optional[dns.resolver.Resolver] = None,
        *,
        nameservers: Optional[List[str]] = None,
        timeout: float = 2.0,
        retries: int = 1,
    ) -> None:
        self._resolver = resolver or make_resolver(nameservers, timeout)
        self.retries = max(0, int(retries))

    def _query(self, qname: dns.name.Name, rdtype: str) -> HopAnswer:
        name = qname.to_text(omit_final_dot=True)
        for attempt in range(self.retries + 1):
            try:
                answer = self._resolver.resolve(qname, rdtype, raise_on_no_answer=False)
            except dns.resolver.NXDOMAIN as exc:
                # A CNAME to a missing target still answers for this name.
                response = exc.responses().get(qname)
                if response is None:
                    return HopAnswer()
                return _hop_from_response(qname, response)
            except dns.exception.Timeout:
                logger.debug("Timeout resolving %s %s (attempt %d)", name, rdtype, attempt + 1)
                continue
            except dns.exception.DNSException as exc:
                raise ResolutionFailure(name, "SERVFAIL", str(exc)) from exc
            return _hop_from_response(qname, answer.response)
        raise ResolutionFailure(name, "TIMEOUT")

    def lookup(self, name: str) -> HopAnswer:
        qname = dns.name.from_text(name)
        hop = self._query(qname, "A")
        if hop.has_address or hop.cname:
            return hop
        return self._query(qname, "AAAA")


class AliasResolver:
    """Brief: Follow CNAME records from a domain to its address record.

    Inputs:
      - lookup: RecordLookup (DnsPythonLookup in production, fakes in tests).
      - max_hops: Maximum number of CNAME links followed; 0 disables the walk.

    Outputs:
      - resolve_chain(domain) -> [domain, cname target, ...]

    Notes:
      - A visited-name set and the hop bound stop the walk on cyclic or
        unterminated CNAME graphs.
      - Each call owns its own visited set, so walks for different domains
        can run concurrently.

    Example:
      >>> class Fake:
      ...     records = {"a.example": HopAnswer(cname="b.example"),
      ...                "b.example": HopAnswer(has_address=True)}
      ...     def lookup(self, name):
      ...         return self.records.get(name, HopAnswer())
      >>> [str(d) for d in AliasResolver(Fake()).resolve_chain("a.example")]
      ['a.example', 'b.example']
    """

    def __init__(self, lookup: RecordLookup, max_hops: int = DEFAULT_MAX_HOPS) -> None:
        self._lookup = lookup
        self.max_hops = max(0, int(max_hops))

    def resolve_chain(self, domain: Union[Domain, str]) -> List[Domain]:
        current = Domain.coerce(domain)
        chain = [current]
        visited = {current}
        if self.max_hops == 0:
            return chain

        while True:
            if len(chain) - 1 >= self.max_hops:
                logger.warning(
                    "CNAME chain for %s exceeds %d hops, stopping at %s",
                    chain[0],
                    self.max_hops,
                    current,
                )
                break
            try:
                hop = self._lookup.lookup(str(current))
            except ResolutionFailure as exc:
                logger.warning("Alias resolution for %s degraded: %s", chain[0], exc)
                break
            if hop.has_address or not hop.cname:
                break
            try:
                target = Domain.coerce(hop.cname)
            except InvalidDomainSyntax:
                logger.warning("Ignoring unusable CNAME target %r for %s", hop.cname, current)
                break
            if target in visited:
                logger.warning("CNAME loop for %s at %s -> %s", chain[0], current, target)
                break
            chain.append(target)
            visited.add(target)
            current = target

        return chain
