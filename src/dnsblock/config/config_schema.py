"""Typed configuration models for dnsblock.

Each section of the YAML file maps to one pydantic model. Unknown keys are
rejected so that typos surface at startup instead of being ignored.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """Brief: Options consumed by init_logging().

    Inputs:
      - level: debug, info, warn, error or crit.
      - stderr: Log to stderr.
      - file: Optional log file path.
      - syslog: False, True, or a mapping with address/facility.
    """

    level: str = Field(default="info")
    stderr: bool = Field(default=True)
    file: Optional[str] = None
    syslog: Union[bool, Dict[str, object]] = Field(default=False)

    class Config:
        extra = "forbid"


class FilesConfig(BaseModel):
    """Input and output paths."""

    hosts_blocked: str = Field(default="hosts_blocked.txt")
    domains_blocked: Optional[str] = None
    allow: Optional[str] = None
    zones_file: str = Field(default="zones.adblock")
    zone_db: str = Field(default="/etc/bind/adblock/db.adblock")
    rpz_file: str = Field(default="adblock.rpz")
    query_log: Optional[str] = None

    class Config:
        extra = "forbid"


class ResolverConfig(BaseModel):
    """Brief: External resolver settings shared by alias and reverse lookups.

    Inputs:
      - nameservers: Optional nameserver IPs; system configuration when empty.
      - timeout: Seconds per attempt.
      - retries: Extra attempts after a timeout.
      - max_hops: Longest CNAME chain followed.
      - follow_aliases: Propagate allow rules along CNAME chains.
    """

    nameservers: List[str] = Field(default_factory=list)
    timeout: float = Field(default=2.0, gt=0)
    retries: int = Field(default=1, ge=0)
    max_hops: int = Field(default=16, ge=0)
    follow_aliases: bool = Field(default=True)

    class Config:
        extra = "forbid"


def _default_seed() -> Dict[str, str]:
    return {"127.0.0.1": "localhost", "::1": "localhost"}


class LogFilterConfig(BaseModel):
    window: int = Field(default=32, ge=1)
    cache_size: int = Field(default=4096, ge=1)
    passthrough_unmatched: bool = Field(default=True)
    seed: Dict[str, str] = Field(default_factory=_default_seed)

    class Config:
        extra = "forbid"


class AdvisoryConfig(BaseModel):
    threshold: int = Field(default=10, ge=0)
    min_depth: int = Field(default=1, ge=1)

    class Config:
        extra = "forbid"


class RpzConfig(BaseModel):
    origin: str = Field(default="rpz.local")
    ttl: int = Field(default=300, ge=0)

    class Config:
        extra = "forbid"


class DnsblockConfig(BaseModel):
    """Brief: Root configuration model.

    Outputs:
      - DnsblockConfig with every section populated (defaults when omitted).

    Example:
      >>> DnsblockConfig().files.hosts_blocked
      'hosts_blocked.txt'
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    files: FilesConfig = Field(default_factory=FilesConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    logfilter: LogFilterConfig = Field(default_factory=LogFilterConfig)
    advisory: AdvisoryConfig = Field(default_factory=AdvisoryConfig)
    rpz: RpzConfig = Field(default_factory=RpzConfig)

    class Config:
        extra = "forbid"
