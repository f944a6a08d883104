"""Exception types raised by dnsblock.

Redundant or conflicting inserts are not exceptions; see
``dnsblock.indexes.InsertStatus``.
"""

from __future__ import annotations

from typing import Optional


class DnsblockError(Exception):
    """Base class for all dnsblock errors."""


class InvalidDomainSyntax(DnsblockError, ValueError):
    """Brief: A rule line or command argument is not a valid domain.

    Inputs:
      - text: The offending text (after lower-casing).
      - reason: Short human readable reason.
    """

    def __init__(self, text: str, reason: str = "not a valid domain") -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"{text!r} is {reason}")


class ResolutionFailure(DnsblockError):
    """Brief: The external resolver could not answer for a name or address.

    Inputs:
      - target: Queried name or IP address.
      - code: Short error code (NXDOMAIN, NODATA, TIMEOUT, SERVFAIL, INVALID).
      - detail: Optional underlying error text.
    """

    def __init__(self, target: str, code: str, detail: Optional[str] = None) -> None:
        self.target = target
        self.code = code
        self.detail = detail
        msg = f"{target}: {code}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)

    def render(self) -> str:
        """Return the sentinel text used in place of a hostname."""
        return f"{self.target} {self.code}"


class MalformedLogLine(DnsblockError, ValueError):
    """A query-log line named a domain but did not match the full line grammar."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"malformed query log line: {line!r}")


class ConfigError(DnsblockError, ValueError):
    """Invalid configuration; fatal at startup."""
