"""Domain names, rules and the rule-file line grammar.

Brief:
  A ``Domain`` is an immutable, lower-cased sequence of labels. A ``Rule`` pairs
  a domain with the free-form annotation that followed it on its source line.

Inputs:
  - Rule file lines such as ``ads.example.com # tracker`` or hosts-file lines
    such as ``0.0.0.0 ads.example.com``.

Outputs:
  - ``Domain`` / ``Rule`` values used by the tries and writers.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .errors import InvalidDomainSyntax

VALID_DOMAIN_RE = re.compile(r"^([a-z0-9_-]+\.)+[a-z0-9_-]+$")
_IPV4_LIKE_RE = re.compile(r"^\d+(\.\d+){3}$")
_COMMENT_LINE_RE = re.compile(r"^\s*#")
_FIRST_TOKEN_RE = re.compile(r"^(\S+)(\s.*)?$")

RESERVED_NAMES = frozenset({"localhost", "localhost.localdomain"})


def normalize_name(text: str) -> str:
    """Lower-case, strip whitespace and a single trailing root dot.

    Example:
      >>> normalize_name("  WWW.Example.COM. ")
      'www.example.com'
    """
    name = str(text).strip().lower()
    if name.endswith("."):
        name = name[:-1]
    return name


@dataclass(frozen=True, order=True)
class Domain:
    """Brief: Ordered, lower-cased label sequence (most specific label first).

    Inputs:
      - labels: Tuple of labels as written, e.g. ("www", "example", "com").

    Outputs:
      - Domain value; equality and hashing follow the label tuple.
    """

    labels: Tuple[str, ...]

    @classmethod
    def parse(cls, text: str) -> "Domain":
        """Brief: Parse and validate a rule domain.

        Inputs:
          - text: Candidate domain text.

        Outputs:
          - Domain when ``text`` satisfies the rule grammar: labels of
            ``[a-z0-9_-]+``, at least two of them, not an IPv4 literal and not
            localhost.

        Raises:
          - InvalidDomainSyntax otherwise.

        Example:
          >>> str(Domain.parse("Ads.Example.COM"))
          'ads.example.com'
        """
        name = normalize_name(text)
        if not VALID_DOMAIN_RE.match(name):
            raise InvalidDomainSyntax(name)
        if _IPV4_LIKE_RE.match(name):
            raise InvalidDomainSyntax(name, "an IPv4 address, not a domain")
        if name in RESERVED_NAMES:
            raise InvalidDomainSyntax(name, "a reserved local name")
        return cls(tuple(name.split(".")))

    @classmethod
    def coerce(cls, value: Union["Domain", str]) -> "Domain":
        """Brief: Lenient conversion used on the lookup side.

        Single-label names (``com``) and names taken from logs or resolvers are
        accepted as long as no label is empty.

        Raises:
          - InvalidDomainSyntax for empty names or empty labels.
        """
        if isinstance(value, Domain):
            return value
        name = normalize_name(value)
        labels = tuple(name.split("."))
        if not name or any(not label for label in labels):
            raise InvalidDomainSyntax(name)
        if any(ch.isspace() for ch in name):
            raise InvalidDomainSyntax(name, "a name containing whitespace")
        return cls(labels)

    @property
    def reversed_labels(self) -> Tuple[str, ...]:
        """Labels in trie order: TLD first."""
        return tuple(reversed(self.labels))

    def ancestors(self) -> Iterator["Domain"]:
        """Yield proper suffixes, longest first, down to the single TLD label."""
        for start in range(1, len(self.labels)):
            yield Domain(self.labels[start:])

    def is_ancestor_of(self, other: "Domain") -> bool:
        n = len(self.labels)
        return len(other.labels) > n and other.labels[-n:] == self.labels

    def __len__(self) -> int:
        return len(self.labels)

    def __str__(self) -> str:
        return ".".join(self.labels)


@dataclass(frozen=True)
class Rule:
    """A domain plus the annotation text that followed it on its source line."""

    domain: Domain
    comment: str = ""

    def serialize(self) -> str:
        """Return ``domain`` immediately followed by its comment as stored."""
        return f"{self.domain}{self.comment}"

    def __str__(self) -> str:
        return self.serialize()


def _is_ip_token(token: str) -> bool:
    try:
        ipaddress.ip_address(token)
    except ValueError:
        return False
    return True


def parse_rule_line(line: str) -> Optional[Rule]:
    """Brief: Parse one rule-file line.

    Inputs:
      - line: Raw line, with or without its newline.

    Outputs:
      - Rule, or None for blank lines and ``#`` comment lines.

    Notes:
      - The comment is everything from the first whitespace after the domain
        to the end of the line (trailing whitespace removed), kept verbatim.
      - Hosts-file lines are accepted: a leading IP address token is skipped
        when another token follows it.

    Raises:
      - InvalidDomainSyntax when the domain token is not valid.

    Example:
      >>> parse_rule_line("www.wikipedia.org # dictionary").serialize()
      'www.wikipedia.org # dictionary'
      >>> parse_rule_line("0.0.0.0 ads.example.net").serialize()
      'ads.example.net'
      >>> parse_rule_line("  # just a note") is None
      True
    """
    text = line.rstrip()
    if not text.strip() or _COMMENT_LINE_RE.match(text):
        return None

    m = _FIRST_TOKEN_RE.match(text.lstrip())
    token, rest = m.group(1), m.group(2) or ""
    if _is_ip_token(token) and rest.strip():
        m = _FIRST_TOKEN_RE.match(rest.lstrip())
        token, rest = m.group(1), m.group(2) or ""

    return Rule(Domain.parse(token), rest)
