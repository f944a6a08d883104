"""Rule file ingestion and block/allow reconciliation.

Brief:
  Allow rules are loaded first. Every block candidate is checked against the
  allow index before it reaches the block index, so an allowed name (or an
  ancestor of one) is never blocked. Allow rules are propagated along CNAME
  chains when an AliasResolver is configured.

Inputs:
  - Rule files or in-memory line iterables; a PolicyEngine.

Outputs:
  - LoadReport per source, and the populated engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

from .domain import Domain, Rule, parse_rule_line
from .engine import PolicyEngine
from .errors import InvalidDomainSyntax
from .indexes import InsertResult, InsertStatus
from .resolvers.alias import AliasResolver

logger = logging.getLogger(__name__)


@dataclass
class LoadReport:
    """Brief: Per-source outcome counters.

    Outputs:
      - added / covered / conflicts / invalid: one count per rule processed.
      - pruned: more specific block rules discarded by broader ones.
      - aliases: allow rules added for CNAME targets.
    """

    source: str
    kind: str
    added: int = 0
    covered: int = 0
    conflicts: int = 0
    invalid: int = 0
    pruned: int = 0
    aliases: int = 0

    def record(self, result: InsertResult) -> None:
        if result.status is InsertStatus.ADDED:
            self.added += 1
            self.pruned += result.pruned
        elif result.status is InsertStatus.CONFLICT_WITH_ALLOWLIST:
            self.conflicts += 1
        else:
            self.covered += 1

    def summary(self) -> str:
        text = (
            f"{self.kind} {self.source}: {self.added} added, {self.covered} already covered, "
            f"{self.conflicts} allow-list conflicts, {self.invalid} invalid"
        )
        if self.pruned:
            text += f", {self.pruned} pruned"
        if self.aliases:
            text += f", {self.aliases} aliases"
        return text


class PolicyLoader:
    """Brief: Feed allow and block rules into a PolicyEngine.

    Inputs:
      - engine: The PolicyEngine to populate.
      - alias_resolver: Optional AliasResolver; when set, every allow rule is
        extended to all names on its CNAME chain.

    Example:
      >>> loader = PolicyLoader(PolicyEngine())
      >>> loader.load_allow_lines(["www.wikipedia.org # dictionary"]).added
      1
      >>> loader.load_block_lines(["adserver.net", "www.adserver.net", "wikipedia.org"]).summary()
      'block <block>: 1 added, 1 already covered, 1 allow-list conflicts, 0 invalid'
    """

    def __init__(
        self, engine: PolicyEngine, alias_resolver: Optional[AliasResolver] = None
    ) -> None:
        self.engine = engine
        self.alias_resolver = alias_resolver
        self._block_loaded = False

    def _parse(self, lines: Iterable[str], report: LoadReport) -> Iterator[Rule]:
        for lineno, line in enumerate(lines, start=1):
            try:
                rule = parse_rule_line(line)
            except InvalidDomainSyntax as exc:
                report.invalid += 1
                logger.warning("%s:%d: %s", report.source, lineno, exc)
                continue
            if rule is not None:
                yield rule

    def allow(self, rule: Rule) -> List[InsertResult]:
        """Brief: Allow ``rule`` and every name on its CNAME chain.

        Outputs:
          - One InsertResult per name; the first is the rule itself.
        """
        results = [self.engine.whitelist_domain(rule.domain, rule.comment)]
        if self.alias_resolver is None:
            return results
        chain = self.alias_resolver.resolve_chain(rule.domain)
        for alias in chain[1:]:
            note = f" # alias of {rule.domain}{rule.comment}"
            result = self.engine.whitelist_domain(alias, note)
            if result.added:
                logger.debug("Allowing %s as alias of %s", alias, rule.domain)
            results.append(result)
        return results

    def block(self, rule: Rule) -> InsertResult:
        """Brief: Block ``rule`` unless the allow index covers it.

        Outputs:
          - InsertResult; CONFLICT_WITH_ALLOWLIST carries the allow rule in
            ``covering`` and leaves the block index untouched.
        """
        match = self.engine.is_whitelisted(rule.domain)
        if match is not None:
            logger.info(
                "Not blocking %s: allowed by %s",
                rule.domain,
                match.rule.serialize() if match.rule else match.domain,
            )
            return InsertResult(
                InsertStatus.CONFLICT_WITH_ALLOWLIST, rule, covering=match.rule
            )
        return self.engine.block_domain(rule.domain, rule.comment)

    def load_allow_lines(self, lines: Iterable[str], source: str = "<allow>") -> LoadReport:
        if self._block_loaded:
            logger.warning(
                "Allow rules from %s loaded after block rules; earlier block "
                "decisions are not revisited",
                source,
            )
        report = LoadReport(source, "allow")
        for rule in self._parse(lines, report):
            results = self.allow(rule)
            report.record(results[0])
            report.aliases += sum(1 for r in results[1:] if r.added)
        logger.info("%s", report.summary())
        return report

    def load_block_lines(self, lines: Iterable[str], source: str = "<block>") -> LoadReport:
        self._block_loaded = True
        report = LoadReport(source, "block")
        for rule in self._parse(lines, report):
            report.record(self.block(rule))
        logger.info("%s", report.summary())
        return report

    def load_allow_file(self, path: str) -> LoadReport:
        with open(path, "r", encoding="utf-8") as fh:
            return self.load_allow_lines(fh, source=path)

    def load_block_file(self, path: str) -> LoadReport:
        with open(path, "r", encoding="utf-8") as fh:
            return self.load_block_lines(fh, source=path)

    def load(
        self,
        allow_files: Sequence[str] = (),
        block_files: Sequence[str] = (),
    ) -> List[LoadReport]:
        """Load every allow file, then every block file, in the given order."""
        reports = [self.load_allow_file(path) for path in allow_files]
        reports.extend(self.load_block_file(path) for path in block_files)
        return reports

    def _names(self, names: Iterable[str], report: LoadReport, annotation: str) -> Iterator[Rule]:
        for name in names:
            try:
                yield Rule(Domain.parse(name), annotation)
            except InvalidDomainSyntax as exc:
                report.invalid += 1
                logger.warning("%s", exc)

    def block_names(self, names: Iterable[str], annotation: str = "") -> LoadReport:
        """Block domains given on the command line."""
        report = LoadReport("<command line>", "block")
        for rule in self._names(names, report, annotation):
            report.record(self.block(rule))
        return report

    def whitelist_names(self, names: Iterable[str], annotation: str = "") -> LoadReport:
        """Allow domains given on the command line."""
        report = LoadReport("<command line>", "allow")
        for rule in self._names(names, report, annotation):
            results = self.allow(rule)
            report.record(results[0])
            report.aliases += sum(1 for r in results[1:] if r.added)
        return report
