"""External name resolution used by dnsblock.

Brief:
  dnsblock never answers queries itself. CNAME chains and reverse (PTR)
  lookups are delegated to dnspython talking to the system nameservers or to
  an explicit list from configuration.

Outputs:
  - make_resolver / make_async_resolver factories shared by the alias and
    reverse resolvers.
"""

from __future__ import annotations

from typing import List, Optional

import dns.asyncresolver
import dns.resolver


def make_resolver(
    nameservers: Optional[List[str]] = None, timeout: float = 2.0
) -> dns.resolver.Resolver:
    """Brief: Build a synchronous dnspython resolver.

    Inputs:
      - nameservers: Optional list of IP strings. When None or empty the system
        configuration (/etc/resolv.conf) is used.
      - timeout: Per-attempt lifetime in seconds.

    Outputs:
      - dns.resolver.Resolver
    """
    r = dns.resolver.Resolver(configure=not nameservers)
    if nameservers:
        r.nameservers = list(nameservers)
    r.lifetime = float(timeout)
    return r


def make_async_resolver(
    nameservers: Optional[List[str]] = None, timeout: float = 2.0
) -> dns.asyncresolver.Resolver:
    """Asyncio counterpart of make_resolver()."""
    r = dns.asyncresolver.Resolver(configure=not nameservers)
    if nameservers:
        r.nameservers = list(nameservers)
    r.lifetime = float(timeout)
    return r


from .alias import AliasResolver, DnsPythonLookup, HopAnswer  # noqa: E402
from .reverse import ReverseCache, ReverseResolver  # noqa: E402

__all__ = [
    "AliasResolver",
    "DnsPythonLookup",
    "HopAnswer",
    "ReverseCache",
    "ReverseResolver",
    "make_async_resolver",
    "make_resolver",
]
