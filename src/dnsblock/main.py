from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import dns.exception

from .advisory import AdvisoryScanner
from .config.config_parser import parse_config_file
from .config.config_schema import DnsblockConfig
from .config.logging_config import init_logging
from .engine import PolicyEngine
from .errors import ConfigError, InvalidDomainSyntax
from .loader import LoadReport, PolicyLoader
from .logfilter import LogFilter, filter_stream
from .resolvers.alias import AliasResolver, DnsPythonLookup
from .resolvers.reverse import ReverseCache, ReverseResolver
from .writers import render_domain_list, render_rpz, render_zone_statements, write_text

logger = logging.getLogger("dnsblock.main")

COMMANDS = (
    "simplify",
    "add",
    "generatezone",
    "addgen",
    "rpz",
    "processlog",
    "advise",
    "check",
    "help",
)


def _as_dict(model: Any) -> Dict[str, Any]:
    """Brief: Plain mapping from a pydantic model (v1 or v2)."""
    for attr in ("model_dump", "dict"):
        method = getattr(model, attr, None)
        if callable(method):
            return dict(method())
    return dict(model)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dnsblock",
        description=(
            "Maintain DNS block/allow lists, generate BIND zone and RPZ files, "
            "and filter DNS query logs."
        ),
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="SECTION.KEY=YAML",
        help="Override a configuration value (repeatable)",
    )
    parser.add_argument("--hosts-blocked", help="Block list maintained by simplify/add")
    parser.add_argument("--domains-blocked", help="Additional block list (read only)")
    parser.add_argument("--allow", help="Allow list, loaded before any block list")
    parser.add_argument("--zones-file", help="Output file for BIND zone statements")
    parser.add_argument("--rpz-file", help="Output file for the RPZ master file")
    parser.add_argument("--query-log", help="DNS query log for processlog ('-' for stdin)")
    parser.add_argument("--log-level", help="debug, info, warn, error or crit")
    parser.add_argument(
        "--no-aliases",
        action="store_true",
        help="Do not follow CNAME chains when loading allow rules",
    )
    parser.add_argument("command", choices=COMMANDS, help="Action to perform")
    parser.add_argument("domains", nargs="*", help="Domains for add, addgen and check")
    return parser


def _apply_cli_paths(cfg: DnsblockConfig, args: argparse.Namespace) -> None:
    files = cfg.files
    for attr in ("hosts_blocked", "domains_blocked", "allow", "zones_file", "rpz_file", "query_log"):
        value = getattr(args, attr)
        if value:
            setattr(files, attr, value)
    if args.no_aliases:
        cfg.resolver.follow_aliases = False
    if args.log_level:
        cfg.logging.level = args.log_level


def _alias_resolver(cfg: DnsblockConfig, command: str) -> Optional[AliasResolver]:
    """Brief: CNAME resolver for allow propagation and check, or None.

    Inputs:
      - cfg: Effective configuration.
      - command: CLI command about to run.

    Outputs:
      - AliasResolver, or None when aliases are disabled, nothing would be
        resolved, or no resolver can be configured on this host.
    """
    rcfg = cfg.resolver
    if not rcfg.follow_aliases or rcfg.max_hops == 0:
        return None
    if not cfg.files.allow and command != "check":
        return None
    try:
        lookup = DnsPythonLookup(
            nameservers=rcfg.nameservers or None, timeout=rcfg.timeout, retries=rcfg.retries
        )
    except dns.exception.DNSException as exc:
        logger.warning("Alias resolution disabled, no usable resolver: %s", exc)
        return None
    return AliasResolver(lookup, max_hops=rcfg.max_hops)


def _log_filter(cfg: DnsblockConfig, engine: PolicyEngine) -> LogFilter:
    rcfg = cfg.resolver
    lcfg = cfg.logfilter
    reverse = ReverseResolver(
        nameservers=rcfg.nameservers or None, timeout=rcfg.timeout, retries=rcfg.retries
    )
    cache = ReverseCache(reverse, maxsize=lcfg.cache_size, seed=lcfg.seed)
    return LogFilter(
        engine,
        cache,
        window=lcfg.window,
        passthrough_unmatched=lcfg.passthrough_unmatched,
    )


def _load(cfg: DnsblockConfig, loader: PolicyLoader) -> List[LoadReport]:
    files = cfg.files
    allow_files = [files.allow] if files.allow else []
    block_files = [files.hosts_blocked]
    if files.domains_blocked:
        block_files.append(files.domains_blocked)
    return loader.load(allow_files=allow_files, block_files=block_files)


def _write_list(cfg: DnsblockConfig, engine: PolicyEngine) -> None:
    write_text(cfg.files.hosts_blocked, render_domain_list(engine.serialize_blocked_domains()))


def _write_zones(cfg: DnsblockConfig, engine: PolicyEngine) -> None:
    write_text(
        cfg.files.zones_file,
        render_zone_statements(engine.serialize_blocked_domains(), cfg.files.zone_db),
    )


def run_command(
    command: str,
    domains: List[str],
    cfg: DnsblockConfig,
    engine: PolicyEngine,
    loader: PolicyLoader,
) -> int:
    """Brief: Execute one CLI command against a loaded engine.

    Inputs:
      - command: One of COMMANDS (except help).
      - domains: Positional domain arguments.
      - cfg: Effective configuration.
      - engine: Engine already populated from the configured files.
      - loader: Loader bound to ``engine``.

    Outputs:
      - int exit code.
    """
    if command == "simplify":
        _write_list(cfg, engine)
    elif command in ("add", "addgen"):
        if not domains:
            logger.error("%s needs at least one domain", command)
            return 2
        report = loader.block_names(domains)
        logger.info("%s", report.summary())
        _write_list(cfg, engine)
        if command == "addgen":
            _write_zones(cfg, engine)
    elif command == "generatezone":
        _write_zones(cfg, engine)
    elif command == "rpz":
        write_text(
            cfg.files.rpz_file,
            render_rpz(engine.serialize_blocked_domains(), cfg.rpz.origin, cfg.rpz.ttl),
        )
    elif command == "processlog":
        log_filter = _log_filter(cfg, engine)
        path = cfg.files.query_log
        if not path or path == "-":
            stats = filter_stream(log_filter, sys.stdin, sys.stdout)
        else:
            with open(path, "r", encoding="utf-8", errors="replace") as fh:
                stats = filter_stream(log_filter, fh, sys.stdout)
        logger.info(
            "Processed %d lines: %d blocked, %d annotated, %d malformed",
            stats.lines,
            stats.blocked,
            stats.annotated,
            stats.malformed,
        )
    elif command == "advise":
        scanner = AdvisoryScanner(
            engine, threshold=cfg.advisory.threshold, min_depth=cfg.advisory.min_depth
        )
        for count, domain in scanner.scan():
            print(f"{count:6d} {domain}")
    elif command == "check":
        if not domains:
            logger.error("check needs at least one domain")
            return 2
        scanner = AdvisoryScanner(engine, alias_resolver=loader.alias_resolver)
        for domain in domains:
            try:
                verdicts = scanner.explain(domain)
            except InvalidDomainSyntax as exc:
                logger.warning("%s", exc)
                continue
            for verdict in verdicts:
                print(verdict.describe())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the dnsblock CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        An exit code: 0 on success, 1 on configuration or I/O failure, 2 on
        usage errors.

    Example use:
        dnsblock --allow allow.txt --hosts-blocked hosts_blocked.txt simplify
        dnsblock --query-log /var/log/named/query.log processlog
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return 0

    try:
        cfg = parse_config_file(args.config, overrides=args.set)
    except (ConfigError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    _apply_cli_paths(cfg, args)
    init_logging(_as_dict(cfg.logging))
    if args.config:
        logger.info("Loaded config from %s", args.config)

    engine = PolicyEngine()
    try:
        alias_resolver = _alias_resolver(cfg, args.command)
        loader = PolicyLoader(engine, alias_resolver)
        _load(cfg, loader)
        return run_command(args.command, list(args.domains), cfg, engine, loader)
    except (OSError, dns.exception.DNSException) as exc:
        # Missing rule files, unwritable outputs, no resolver for processlog.
        logger.error("%s", exc)
        return 1


def console() -> None:
    sys.exit(main())


if __name__ == "__main__":
    console()
