"""Read-only diagnostics over the policy engine.

* ``AdvisoryScanner.scan`` points at block-list nodes with many direct
  children: places where a single broader rule might replace many narrow ones.
  The hint is structural only; whether the parent should really be blocked is
  for a human to decide.
* ``AdvisoryScanner.explain`` reports the verdict for every name on a domain's
  CNAME chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .domain import Domain, Rule
from .engine import PolicyEngine
from .indexes import AllowMatch
from .resolvers.alias import AliasResolver

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 10


@dataclass(frozen=True)
class Verdict:
    domain: Domain
    blocked_by: Optional[Rule] = None
    allowed_by: Optional[AllowMatch] = None

    def describe(self) -> str:
        if self.blocked_by is not None:
            return f"{self.domain}: blocked by {self.blocked_by.serialize()}"
        if self.allowed_by is not None:
            rule = self.allowed_by.rule
            return f"{self.domain}: allowed by {rule.serialize() if rule else self.allowed_by.domain}"
        return f"{self.domain}: no rule"


class AdvisoryScanner:
    """Brief: Consolidation hints and per-domain explanations.

    Inputs:
      - engine: PolicyEngine to inspect (never mutated).
      - threshold: Report nodes with strictly more direct children than this.
      - min_depth: Shallowest node depth considered (1 = TLD level).
      - alias_resolver: Optional AliasResolver used by explain().
    """

    def __init__(
        self,
        engine: PolicyEngine,
        threshold: int = DEFAULT_THRESHOLD,
        min_depth: int = 1,
        alias_resolver: Optional[AliasResolver] = None,
    ) -> None:
        self.engine = engine
        self.threshold = int(threshold)
        self.min_depth = max(1, int(min_depth))
        self.alias_resolver = alias_resolver

    def scan(self) -> List[Tuple[int, str]]:
        """Brief: Return ``(child_count, domain)`` hints.

        Outputs:
          - List sorted by child count (largest first), then domain.

        Example:
          >>> engine = PolicyEngine()
          >>> for n in range(3):
          ...     _ = engine.block_domain(f"ad{n}.tracker.example")
          >>> AdvisoryScanner(engine, threshold=2).scan()
          [(3, 'tracker.example')]
        """
        hints = []
        for path, node in self.engine.blocked.trie.walk():
            if len(path) < self.min_depth:
                continue
            if len(node.children) > self.threshold:
                hints.append((len(node.children), str(Domain(tuple(reversed(path))))))
        hints.sort(key=lambda hint: (-hint[0], hint[1]))
        return hints

    def verdict(self, domain: Union[Domain, str]) -> Verdict:
        domain = Domain.coerce(domain)
        return Verdict(
            domain,
            blocked_by=self.engine.is_blocked(domain),
            allowed_by=self.engine.is_whitelisted(domain),
        )

    def explain(self, domain: Union[Domain, str]) -> List[Verdict]:
        """Verdicts for ``domain`` and, with a resolver, each CNAME target."""
        domain = Domain.coerce(domain)
        if self.alias_resolver is None:
            chain = [domain]
        else:
            chain = self.alias_resolver.resolve_chain(domain)
        return [self.verdict(name) for name in chain]
