"""Query-log filtering.

Brief:
  Each BIND query-log line naming an ``IN A`` query is either suppressed with
  ``blocked: <domain>`` (when the block index covers the name) or rewritten as
  ``<timestamp> client: <hostname>, query: <domain>`` using a reverse-DNS
  lookup of the client address.

Inputs:
  - Lines such as::

      19-Oct-2026 10:00:01.123 queries: info: client @0x7f00 10.0.0.5#53211
      (www.example.com): query: www.example.com IN A + (10.0.0.1)

Outputs:
  - Filtered lines, in input order.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Deque, Iterable, Optional, TextIO, Union

from .domain import normalize_name
from .engine import PolicyEngine
from .errors import MalformedLogLine
from .resolvers.reverse import ReverseCache

logger = logging.getLogger(__name__)

_LABEL = r"[A-Za-z0-9_](?:[A-Za-z0-9_-]*[A-Za-z0-9_])?"
QUERY_RE = re.compile(rf"query:\s(?P<qname>(?:{_LABEL}\.)+{_LABEL})\.?\sIN\sA(?=\s|$)")
ENTRY_RE = re.compile(
    r"^(?P<timestamp>.+?)\s(?:queries:\s\S+:\s)?client\s(?:@\S+\s)?"
    r"(?P<ip>[0-9A-Fa-f:.]+)#\d+\s.*?query:\s(?P<qname>\S+)\sIN\sA(?=\s|$)"
)

DEFAULT_WINDOW = 32


@dataclass
class FilterStats:
    lines: int = 0
    blocked: int = 0
    annotated: int = 0
    unmatched: int = 0
    malformed: int = 0


class LogFilter:
    """Brief: Turn query-log lines into suppression markers or summaries.

    Inputs:
      - engine: PolicyEngine providing ``is_blocked``.
      - reverse: ReverseCache for client address lookups.
      - window: Maximum number of lines resolving at once; output order always
        follows input order. ``window=1`` is strictly sequential.
      - passthrough_unmatched: Emit lines without an ``IN A`` query unchanged
        (True) or drop them (False).

    Outputs:
      - ``await process_line(line)`` -> output line or None (dropped).
      - ``filter_lines(lines)`` -> async iterator of output lines.
    """

    def __init__(
        self,
        engine: PolicyEngine,
        reverse: ReverseCache,
        *,
        window: int = DEFAULT_WINDOW,
        passthrough_unmatched: bool = True,
    ) -> None:
        self.engine = engine
        self.reverse = reverse
        self.window = max(1, int(window))
        self.passthrough_unmatched = bool(passthrough_unmatched)
        self.stats = FilterStats()

    async def process_line(self, line: str) -> Optional[str]:
        line = line.rstrip("\r\n")
        self.stats.lines += 1

        m = QUERY_RE.search(line)
        if m is None:
            self.stats.unmatched += 1
            return line if self.passthrough_unmatched else None

        domain = normalize_name(m.group("qname"))
        if self.engine.is_blocked(domain) is not None:
            self.stats.blocked += 1
            return f"blocked: {domain}"

        entry = ENTRY_RE.match(line)
        if entry is None:
            self.stats.malformed += 1
            logger.warning("%s", MalformedLogLine(line))
            return None

        hostname = await self.reverse.hostname(entry.group("ip"))
        self.stats.annotated += 1
        return f"{entry.group('timestamp')} client: {hostname}, query: {domain}"

    async def filter_lines(
        self, lines: Union[Iterable[str], AsyncIterator[str]]
    ) -> AsyncIterator[str]:
        """Yield filtered lines in input order with up to ``window`` in flight."""
        pending: Deque["asyncio.Task[Optional[str]]"] = deque()
        try:
            async for line in _aiter(lines):
                pending.append(asyncio.ensure_future(self.process_line(line)))
                while len(pending) >= self.window:
                    out = await pending.popleft()
                    if out is not None:
                        yield out
            while pending:
                out = await pending.popleft()
                if out is not None:
                    yield out
        finally:
            for task in pending:
                task.cancel()

    async def run(self, lines: Union[Iterable[str], AsyncIterator[str]], out: TextIO) -> FilterStats:
        async for text in self.filter_lines(lines):
            out.write(text + "\n")
        return self.stats


async def _aiter(lines):
    if hasattr(lines, "__aiter__"):
        async for line in lines:
            yield line
    else:
        for line in lines:
            yield line


def filter_stream(log_filter: LogFilter, lines: Iterable[str], out: TextIO) -> FilterStats:
    """Synchronous entry point used by the CLI."""
    return asyncio.run(log_filter.run(lines, out))
