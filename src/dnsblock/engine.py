"""PolicyEngine: the single owner of the block and allow indexes."""

from __future__ import annotations

from typing import List, Optional, Union

from .domain import Domain, Rule
from .indexes import AllowIndex, AllowMatch, BlockIndex, InsertResult


class PolicyEngine:
    """Brief: Holds one BlockIndex and one AllowIndex for the whole run.

    Inputs:
      - None

    Outputs:
      - PolicyEngine passed by reference into the loader, log filter and
        advisory scanner; nothing else keeps index state.

    Example:
      >>> engine = PolicyEngine()
      >>> bool(engine.block_domain("adserver.net"))
      True
      >>> engine.serialize_blocked_domains()
      ['adserver.net']
    """

    def __init__(self) -> None:
        self.blocked = BlockIndex()
        self.allowed = AllowIndex()

    def reset(self) -> None:
        """Empty both indexes."""
        self.blocked.clear()
        self.allowed.clear()

    def block_domain(self, domain: Union[Domain, str], annotation: str = "") -> InsertResult:
        return self.blocked.block_domain(domain, annotation)

    def whitelist_domain(
        self, domain: Union[Domain, str], annotation: str = ""
    ) -> InsertResult:
        return self.allowed.whitelist_domain(domain, annotation)

    def is_blocked(self, domain: Union[Domain, str]) -> Optional[Rule]:
        return self.blocked.is_blocked(domain)

    def is_whitelisted(self, domain: Union[Domain, str]) -> Optional[AllowMatch]:
        return self.allowed.is_whitelisted(domain)

    def serialize_blocked_domains(self) -> List[str]:
        return self.blocked.serialize_blocked_domains()

    def blocked_domains(self) -> List[str]:
        return self.blocked.domains()
