"""dnsblock package: hierarchical DNS block/allow policy engine and query-log filter."""

from .domain import Domain, Rule, parse_rule_line
from .engine import PolicyEngine
from .indexes import AllowIndex, AllowMatch, BlockIndex, InsertResult, InsertStatus
from .loader import LoadReport, PolicyLoader

__all__ = [
    "AllowIndex",
    "AllowMatch",
    "BlockIndex",
    "Domain",
    "InsertResult",
    "InsertStatus",
    "LoadReport",
    "PolicyEngine",
    "PolicyLoader",
    "Rule",
    "parse_rule_line",
]
