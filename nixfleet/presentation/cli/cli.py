"""
CLI Module

Architectural Intent:
- Command-line interface for nixfleet
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control
- Exit code is 0 only when every attempted host reached success
"""

import argparse
import asyncio
import logging
import sys
import traceback
from pathlib import Path
from nixfleet import composition_root
from nixfleet.application.confirm import Confirm, assume_no, assume_yes
from nixfleet.application.dtos.deployment_dtos import (
    DeployFleetRequest,
    DeployFleetResponse,
    RollbackRequest,
)
from nixfleet.domain.entities.deployment_run import (
    DeployAction,
    DeploymentMode,
    new_run_id,
)
from nixfleet.domain.errors import NixfleetError
from nixfleet.domain.value_objects.host import HostCategory, classify
from nixfleet.infrastructure.config import load_config
from nixfleet.infrastructure.logging import configure_logging, level_from_name
from nixfleet.infrastructure.telemetry.otel_exporter import create_exporter


def console_confirm(question: str) -> bool:
    try:
        reply = input(f"{question} [y/N]: ")
    except EOFError:
        return False
    return reply.strip().lower() in ("y", "yes")


def _confirm_for(args) -> Confirm:
    if getattr(args, "yes", False):
        return assume_yes
    if getattr(args, "non_interactive", False):
        return assume_no
    return console_confirm


def _plan_confirm_for(args) -> Confirm:
    # --non-interactive declines policy questions but still runs the plan
    if getattr(args, "non_interactive", False):
        return assume_yes
    return _confirm_for(args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nixfleet",
        description="nixfleet: multi-host NixOS deployment orchestrator",
    )
    parser.add_argument(
        "--config", "-c", help="Path to nixfleet.json (default: ./nixfleet.json)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON logs"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser("deploy", help="Deploy to fleet hosts")
    deploy_parser.add_argument(
        "hosts", nargs="*", help="Hosts to deploy (default: all flake hosts)"
    )
    deploy_parser.add_argument(
        "--mode", choices=[m.value for m in DeploymentMode], help="Deployment mode"
    )
    deploy_parser.add_argument(
        "--action", choices=[a.value for a in DeployAction], help="nixos-rebuild action"
    )
    deploy_parser.add_argument("--filter", help="Glob pattern over flake hosts")
    deploy_parser.add_argument(
        "--batch-size", type=int, help="Batch size for rolling deployment"
    )
    deploy_parser.add_argument(
        "--batch-delay", type=float, help="Delay between batches (seconds)"
    )
    deploy_parser.add_argument(
        "--max-parallel", type=int, help="Max parallel deployments"
    )
    deploy_parser.add_argument(
        "--rollback-on-failure", action="store_true", help="Roll back failed hosts"
    )
    deploy_parser.add_argument(
        "--build-first",
        action="store_true",
        help="Build each host before deploying; a failed build skips that host",
    )
    deploy_parser.add_argument("--log-dir", help="Root directory for run logs")
    deploy_parser.add_argument(
        "--yes", "-y", action="store_true", help="Answer yes to every question"
    )
    deploy_parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Run the plan without asking, answer no to every later question",
    )

    build_parser_ = subparsers.add_parser(
        "build", help="Build host configurations without deploying"
    )
    build_parser_.add_argument("hosts", nargs="*", help="Hosts to build")
    build_parser_.add_argument("--filter", help="Glob pattern over flake hosts")
    build_parser_.add_argument("--max-parallel", type=int, help="Max parallel builds")
    build_parser_.add_argument("--log-dir", help="Root directory for build logs")

    hosts_parser = subparsers.add_parser("hosts", help="List configured hosts")
    hosts_parser.add_argument("--filter", help="Glob pattern over flake hosts")
    hosts_parser.add_argument(
        "--probe", action="store_true", help="Check which hosts are reachable"
    )

    rollback_parser = subparsers.add_parser(
        "rollback", help="Roll hosts back to their previous generation"
    )
    rollback_parser.add_argument("hosts", nargs="+", help="Hosts to roll back")
    rollback_parser.add_argument("--log-dir", help="Root directory for rollback logs")
    rollback_parser.add_argument(
        "--yes", "-y", action="store_true", help="Do not ask for confirmation"
    )

    return parser


def _pick(value, default):
    return default if value is None else value


def _print_summary(response: DeployFleetResponse) -> None:
    report = response.report
    print()
    print("═" * 47)
    print("Deployment Complete")
    print("═" * 47)
    print(f"Run:        {report.run_id}")
    print(f"Successful: {report.success}/{report.total}")
    if report.failed:
        print(f"Failed:     {report.failed}")
    if report.pending:
        print(f"Pending:    {report.pending}")
    for host, ok in response.rollbacks.items():
        print(f"Rollback {host}: {'ok' if ok else 'FAILED'}")
    print(f"Report:     {report.log_dir}/deployment-report.md")


async def _deploy(args, container) -> int:
    deploy_cfg = container.config.deploy
    request = DeployFleetRequest(
        mode=DeploymentMode(_pick(args.mode, deploy_cfg.mode)),
        action=DeployAction(_pick(args.action, deploy_cfg.action)),
        hosts=tuple(args.hosts),
        host_filter=args.filter,
        batch_size=_pick(args.batch_size, deploy_cfg.batch_size),
        batch_delay=_pick(args.batch_delay, deploy_cfg.batch_delay),
        max_parallel=_pick(args.max_parallel, deploy_cfg.max_parallel),
        rollback_on_failure=args.rollback_on_failure,
        build_first=args.build_first,
        log_dir=_pick(args.log_dir, deploy_cfg.log_dir),
    )

    response = await container.deploy_fleet.execute(
        request, _confirm_for(args), confirm_plan=_plan_confirm_for(args)
    )
    if response is None:
        print("[*] Deployment cancelled.")
        return 0

    _print_summary(response)
    if response.report.pending:
        print(f"[!] {response.report.pending} host(s) were not attempted")
    if response.success:
        print("[+] All deployments completed successfully!")
        return 0
    print("[-] Deployment finished with failures.")
    return response.exit_code


async def _build(args, container) -> int:
    hosts = await container.resolver.resolve(args.filter, args.hosts)
    if not hosts:
        print("[-] No hosts to build")
        return 1
    builder = container.builder
    if args.max_parallel:
        builder.max_parallel = args.max_parallel
    log_dir = Path(_pick(args.log_dir, container.config.deploy.log_dir)) / new_run_id()

    print(f"[*] Building {len(hosts)} host(s)...")
    results = await builder.build_all(hosts, log_dir)
    for result in results:
        mark = "[+]" if result.success else "[-]"
        print(f"{mark} {result.host}: {'ok' if result.success else 'failed'} ({result.log_path})")
    return 0 if all(r.success for r in results) else 1


async def _hosts(args, container) -> int:
    hosts = await container.resolver.resolve(args.filter)
    if not hosts:
        print("[-] No hosts found in flake configuration")
        return 1

    reachable = {}
    if args.probe:
        records = await container.prober.probe_all(hosts)
        reachable = {r.id: r.reachable for r in records}

    print("Configured Hosts by Type:")
    for category in HostCategory:
        members = [h for h in hosts if classify(h) is category]
        if not members:
            continue
        print(f"{category.value.capitalize()} ({len(members)}):")
        for host in members:
            if args.probe:
                marker = "●" if reachable.get(host) else "○"
                print(f"  {marker} {host}")
            else:
                print(f"  - {host}")
    print(f"Total hosts: {len(hosts)}")
    if args.probe:
        print("(● = online, ○ = offline)")
    return 0


async def _rollback(args, container) -> int:
    request = RollbackRequest(
        targets=list(args.hosts),
        log_dir=_pick(args.log_dir, container.config.deploy.log_dir),
    )
    if not args.yes and not console_confirm(
        f"Roll back {', '.join(request.targets)} to the previous generation?"
    ):
        print("[*] Rollback cancelled.")
        return 0

    print(f"[*] Rolling back {request.targets}...")
    results = await container.rollback.execute(
        request.targets, Path(request.log_dir) / new_run_id()
    )
    for host, ok in results.items():
        print(f"{'[+]' if ok else '[-]'} {host}: {'rolled back' if ok else 'rollback failed'}")
    return 0 if all(results.values()) else 1


COMMANDS = {
    "deploy": _deploy,
    "build": _build,
    "hosts": _hosts,
    "rollback": _rollback,
}


async def async_main():
    parser = build_parser()
    args = parser.parse_args()

    config = load_config(args.config)

    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = level_from_name(config.log_level)
    configure_logging(level=level, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return

    telemetry = None
    if config.telemetry.endpoint:
        telemetry = await create_exporter(
            config.telemetry.endpoint, insecure=config.telemetry.insecure
        )
    container = composition_root.create_container(config, telemetry=telemetry)

    try:
        code = await handler(args, container)
    except NixfleetError as e:
        print(f"[-] {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)
    except ValueError as e:
        print(f"[-] Invalid arguments: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n[*] Interrupted.")
        sys.exit(130)
    except Exception as e:
        print(f"[-] {args.command.capitalize()} Failed: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)

    if code:
        sys.exit(code)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
