"""Output formats built from ``serialize_blocked_domains()``.

Every writer takes the ordered list of serialized rules (``domain`` followed
by its comment) as its only input.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_ZONE_DB = "/etc/bind/adblock/db.adblock"


def rule_domain(entry: str) -> str:
    """Return the domain part of a serialized rule."""
    return entry.split(None, 1)[0]


def render_domain_list(entries: Iterable[str]) -> str:
    """One serialized rule per line; reloading the text restores the rules."""
    return "".join(f"{entry}\n" for entry in entries)


def render_zone_statements(entries: Iterable[str], zone_db: str = DEFAULT_ZONE_DB) -> str:
    """Brief: BIND ``zone`` statements pointing every blocked domain at one db file.

    Example:
      >>> print(render_zone_statements(["adserver.net # ads"], "/tmp/db.adblock"), end="")
      zone "adserver.net" { type master; file "/tmp/db.adblock"; };
    """
    return "".join(
        f'zone "{rule_domain(entry)}" {{ type master; file "{zone_db}"; }};\n'
        for entry in entries
    )


def render_rpz(
    entries: Iterable[str],
    origin: str = "rpz.local",
    ttl: int = 300,
    serial: Optional[int] = None,
) -> str:
    """Brief: Response-policy-zone master file answering NXDOMAIN for each domain.

    Inputs:
      - entries: Serialized rules.
      - origin: Zone origin written as $ORIGIN.
      - ttl: Default TTL.
      - serial: SOA serial (defaults to the current UNIX time).

    Outputs:
      - Zone text with ``<domain> CNAME .`` and ``*.<domain> CNAME .`` records.
    """
    if serial is None:
        serial = int(time.time())
    origin = origin.rstrip(".") + "."
    lines: List[str] = [
        f"$TTL {int(ttl)}",
        f"$ORIGIN {origin}",
        f"@ IN SOA localhost. hostmaster.localhost. ({serial} 3600 600 86400 {int(ttl)})",
        "  IN NS localhost.",
    ]
    for entry in entries:
        domain = rule_domain(entry)
        lines.append(f"{domain} CNAME .")
        lines.append(f"*.{domain} CNAME .")
    return "\n".join(lines) + "\n"


def write_text(path: str, text: str) -> None:
    """Write ``text`` to ``path`` via a temporary file and an atomic rename."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Wrote %s", path)
