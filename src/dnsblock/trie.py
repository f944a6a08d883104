"""Reversed-label trie shared by the block and allow indexes.

Domain names are split on "." and reversed before insertion so the TLD comes
first: "ads.example.com" is stored along the path com -> example -> ads. Names
sharing a suffix share a path.

The trie has no rule semantics of its own. What happens when an insert meets
existing rules is decided by an ``InsertPolicy``; what counts as a match is
decided by a ``LookupPolicy``. ``BlockIndex`` and ``AllowIndex`` are the same
trie wired with different policies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Protocol, Tuple, Union

from .domain import Domain, Rule

Path = Tuple[str, ...]


@dataclass
class TrieNode:
    """One label step. ``annotation`` is None for purely structural nodes."""

    children: Dict[str, "TrieNode"] = field(default_factory=dict)
    annotation: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.annotation is not None


def _rule_at(path: Path, node: TrieNode) -> Rule:
    return Rule(Domain(tuple(reversed(path))), node.annotation or "")


@dataclass(frozen=True)
class TrieMatch:
    """Brief: Result of a successful lookup.

    Inputs:
      - path: Reversed labels from the root to the matched node.
      - node: The matched node (terminal or structural).
    """

    path: Path
    node: TrieNode

    @property
    def domain(self) -> Domain:
        return Domain(tuple(reversed(self.path)))

    @property
    def rule(self) -> Optional[Rule]:
        """The rule stored on the matched node, if it is terminal."""
        if not self.node.is_terminal:
            return None
        return _rule_at(self.path, self.node)


class InsertStatus(str, Enum):
    ADDED = "added"
    ALREADY_COVERED = "already_covered"
    CONFLICT_WITH_ALLOWLIST = "conflict_with_allowlist"


@dataclass(frozen=True)
class InsertResult:
    """Brief: Outcome of an insert attempt.

    Inputs:
      - status: ADDED, ALREADY_COVERED or CONFLICT_WITH_ALLOWLIST.
      - rule: The rule that was offered.
      - covering: Existing rule that made the insert redundant or conflicting.
      - pruned: Number of more specific rules discarded by a successful insert.

    Outputs:
      - Truthy only when the rule was added.
    """

    status: InsertStatus
    rule: Rule
    covering: Optional[Rule] = None
    pruned: int = 0

    @property
    def added(self) -> bool:
        return self.status is InsertStatus.ADDED

    def __bool__(self) -> bool:
        return self.added


class InsertPolicy(Protocol):
    """Decides whether a node at the final label may take a new rule."""

    def admit(self, target: TrieNode) -> bool: ...

    def settle(self, target: TrieNode) -> int: ...


class LookupPolicy(Protocol):
    """Decides which node, if any, answers a lookup for ``labels``."""

    def match(self, root: TrieNode, labels: Path) -> Optional[TrieMatch]: ...


class PruneDescendants:
    """Broadest rule wins: a new rule discards every rule beneath it."""

    def admit(self, target: TrieNode) -> bool:
        return not target.is_terminal

    def settle(self, target: TrieNode) -> int:
        pruned = sum(1 for _ in _iter_rules(target, ()))
        target.children = {}
        return pruned


class RejectWhenSpecific:
    """Most specific rule wins: refuse a rule above an existing one."""

    def admit(self, target: TrieNode) -> bool:
        return not target.is_terminal and not target.children

    def settle(self, target: TrieNode) -> int:
        return 0


class FirstTerminalWins:
    """The first terminal node met on the way down answers the lookup."""

    def match(self, root: TrieNode, labels: Path) -> Optional[TrieMatch]:
        node = root
        for depth, label in enumerate(labels, start=1):
            node = node.children.get(label)
            if node is None:
                return None
            if node.is_terminal:
                return TrieMatch(labels[:depth], node)
        return None


class FullPathRequired:
    """Every label must have a node; the final node answers, terminal or not."""

    def match(self, root: TrieNode, labels: Path) -> Optional[TrieMatch]:
        node = root
        for label in labels:
            node = node.children.get(label)
            if node is None:
                return None
        return TrieMatch(labels, node)


PRUNE_DESCENDANTS = PruneDescendants()
REJECT_WHEN_SPECIFIC = RejectWhenSpecific()
FIRST_TERMINAL_WINS = FirstTerminalWins()
FULL_PATH_REQUIRED = FullPathRequired()


def _iter_rules(node: TrieNode, path: Path) -> Iterator[Rule]:
    # Branches (recursively) first, then leaves, each group in label order.
    children = node.children
    for label in sorted(k for k, c in children.items() if c.children):
        child = children[label]
        child_path = path + (label,)
        if child.is_terminal:
            yield _rule_at(child_path, child)
        yield from _iter_rules(child, child_path)
    for label in sorted(k for k, c in children.items() if not c.children):
        child = children[label]
        if child.is_terminal:
            yield _rule_at(path + (label,), child)


class LabelTrie:
    """Brief: Reversed-label tree parameterized by insert and lookup policies.

    Inputs:
      - insert_policy: InsertPolicy deciding admission and subtree handling.
      - lookup_policy: LookupPolicy deciding what a lookup returns.

    Outputs:
      - LabelTrie instance owning one root node.

    Example:
      >>> t = LabelTrie(PRUNE_DESCENDANTS, FIRST_TERMINAL_WINS)
      >>> bool(t.insert("ads.example"))
      True
      >>> str(t.lookup("www.ads.example").domain)
      'ads.example'
    """

    def __init__(self, insert_policy: InsertPolicy, lookup_policy: LookupPolicy) -> None:
        self._insert_policy = insert_policy
        self._lookup_policy = lookup_policy
        self._root = TrieNode()
        self._rule_count = 0

    @property
    def root(self) -> TrieNode:
        return self._root

    def clear(self) -> None:
        self._root = TrieNode()
        self._rule_count = 0

    def __len__(self) -> int:
        return self._rule_count

    def insert(self, domain: Union[Domain, str], annotation: str = "") -> InsertResult:
        """Brief: Store ``annotation`` as the rule for ``domain``.

        Inputs:
          - domain: Domain or domain text.
          - annotation: Free-form comment kept with the rule.

        Outputs:
          - InsertResult. ALREADY_COVERED when a terminal ancestor exists on the
            path or the insert policy refuses the final node; the trie is left
            untouched in that case.
        """
        domain = Domain.coerce(domain)
        rule = Rule(domain, annotation)
        labels = domain.reversed_labels

        # Check phase: nothing is created until the insert is known to succeed.
        parent = self._root
        for depth, label in enumerate(labels[:-1], start=1):
            child = parent.children.get(label)
            if child is None:
                break
            if child.is_terminal:
                return InsertResult(
                    InsertStatus.ALREADY_COVERED,
                    rule,
                    covering=_rule_at(labels[:depth], child),
                )
            parent = child
        else:
            target = parent.children.get(labels[-1])
            if target is not None and not self._insert_policy.admit(target):
                return InsertResult(
                    InsertStatus.ALREADY_COVERED,
                    rule,
                    covering=self._first_rule(labels, target),
                )

        node = self._root
        for label in labels:
            node = node.children.setdefault(label, TrieNode())
        pruned = self._insert_policy.settle(node)
        node.annotation = annotation
        self._rule_count += 1 - pruned
        return InsertResult(InsertStatus.ADDED, rule, pruned=pruned)

    def lookup(self, domain: Union[Domain, str]) -> Optional[TrieMatch]:
        """Return the lookup policy's match for ``domain`` or None."""
        return self._lookup_policy.match(
            self._root, Domain.coerce(domain).reversed_labels
        )

    def first_rule_under(self, match: TrieMatch) -> Optional[Rule]:
        """Return the matched node's rule, else the first rule beneath it."""
        return self._first_rule(match.path, match.node)

    def rules(self) -> Iterator[Rule]:
        """Yield every stored rule, branches before leaves, in label order."""
        return _iter_rules(self._root, ())

    def walk(self) -> Iterator[Tuple[Path, TrieNode]]:
        """Depth-first pre-order walk of every node below the root."""
        stack = [
            ((label,), child)
            for label, child in sorted(self._root.children.items(), reverse=True)
        ]
        while stack:
            path, node = stack.pop()
            yield path, node
            for label, child in sorted(node.children.items(), reverse=True):
                stack.append((path + (label,), child))

    def node_count(self) -> int:
        return sum(1 for _ in self.walk())

    @staticmethod
    def _first_rule(path: Path, node: TrieNode) -> Optional[Rule]:
        if node.is_terminal:
            return _rule_at(path, node)
        return next(_iter_rules(node, path), None)
