"""Block and allow indexes built on ``LabelTrie``.

The two indexes deliberately disagree about precedence:

* ``BlockIndex``: the broadest rule wins. Blocking ``ads.example`` blocks every
  name below it, and a later, more specific block rule is redundant.
* ``AllowIndex``: the most specific rule is authoritative, and every ancestor
  of an allowed name is treated as allowed too, because its node exists as
  part of the allowed name's path. Unlisted descendants are not allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from .domain import Domain, Rule
from .trie import (
    FIRST_TERMINAL_WINS,
    FULL_PATH_REQUIRED,
    PRUNE_DESCENDANTS,
    REJECT_WHEN_SPECIFIC,
    InsertResult,
    InsertStatus,
    LabelTrie,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AllowIndex",
    "AllowMatch",
    "BlockIndex",
    "InsertResult",
    "InsertStatus",
]


class BlockIndex:
    """Brief: Block rules with broadest-wins semantics.

    Example:
      >>> idx = BlockIndex()
      >>> bool(idx.block_domain("adserver.net"))
      True
      >>> idx.block_domain("www.adserver.net").status.value
      'already_covered'
      >>> str(idx.is_blocked("www.adserver.net").domain)
      'adserver.net'
    """

    def __init__(self) -> None:
        self.trie = LabelTrie(PRUNE_DESCENDANTS, FIRST_TERMINAL_WINS)

    def __len__(self) -> int:
        return len(self.trie)

    def block_domain(self, domain: Union[Domain, str], annotation: str = "") -> InsertResult:
        """Brief: Add a block rule unless an existing rule already covers it.

        Inputs:
          - domain: Domain to block.
          - annotation: Comment stored with the rule.

        Outputs:
          - InsertResult; ``covering`` names the ancestor (or identical) rule
            on ALREADY_COVERED, ``pruned`` counts subsumed rules on ADDED.
        """
        result = self.trie.insert(domain, annotation)
        if result.added and result.pruned:
            logger.debug(
                "%s subsumes %d more specific block rule(s)",
                result.rule.domain,
                result.pruned,
            )
        elif not result.added:
            logger.debug(
                "Domain %s already blocked by %s",
                result.rule.domain,
                result.covering.domain,
            )
        return result

    def is_blocked(self, domain: Union[Domain, str]) -> Optional[Rule]:
        """Return the rule blocking ``domain`` (itself or an ancestor), or None."""
        match = self.trie.lookup(domain)
        return match.rule if match is not None else None

    def rules(self) -> Iterator[Rule]:
        return self.trie.rules()

    def domains(self) -> List[str]:
        return [str(rule.domain) for rule in self.trie.rules()]

    def serialize_blocked_domains(self) -> List[str]:
        """Serialized rules (domain plus comment) in enumeration order."""
        return [rule.serialize() for rule in self.trie.rules()]

    def clear(self) -> None:
        self.trie.clear()


@dataclass(frozen=True)
class AllowMatch:
    """Brief: Positive allow-list lookup.

    Inputs:
      - domain: The queried domain (every label of it exists in the index).
      - rule: The authoritative rule: the domain's own rule when it has one,
        otherwise the first more specific rule beneath it.
    """

    domain: Domain
    rule: Optional[Rule]

    @property
    def explicit(self) -> bool:
        """True when the domain carries its own allow rule."""
        return self.rule is not None and self.rule.domain == self.domain


class AllowIndex:
    """Brief: Allow rules with most-specific-wins, ancestor-inclusive semantics.

    Example:
      >>> idx = AllowIndex()
      >>> bool(idx.whitelist_domain("www.wikipedia.org", " # dictionary"))
      True
      >>> idx.is_whitelisted("wikipedia.org") is not None
      True
      >>> idx.is_whitelisted("ftp.www.wikipedia.org") is None
      True
    """

    def __init__(self) -> None:
        self.trie = LabelTrie(REJECT_WHEN_SPECIFIC, FULL_PATH_REQUIRED)

    def __len__(self) -> int:
        return len(self.trie)

    def whitelist_domain(
        self, domain: Union[Domain, str], annotation: str = ""
    ) -> InsertResult:
        """Brief: Add an allow rule.

        Inputs:
          - domain: Domain to allow.
          - annotation: Comment stored with the rule.

        Outputs:
          - InsertResult. ALREADY_COVERED when the domain already has a rule,
            when a more specific rule exists beneath it, or when an ancestor
            already carries a rule.
        """
        result = self.trie.insert(domain, annotation)
        if not result.added:
            logger.debug(
                "Allow rule %s not added, already covered by %s",
                result.rule.domain,
                result.covering.domain,
            )
        return result

    def is_whitelisted(self, domain: Union[Domain, str]) -> Optional[AllowMatch]:
        """Return an AllowMatch when every label of ``domain`` is indexed."""
        match = self.trie.lookup(domain)
        if match is None:
            return None
        return AllowMatch(match.domain, self.trie.first_rule_under(match))

    def rules(self) -> Iterator[Rule]:
        return self.trie.rules()

    def clear(self) -> None:
        self.trie.clear()

