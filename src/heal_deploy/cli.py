"""Command-line interface for heal-deploy."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .orchestrator import AttemptRecord, DeploymentConfig, DeploymentResult
from .utils.logging import configure_logging
from .workflow import DeploymentWorkflow

console = Console()

_STATUS_EMOJI = {"success": "✅", "failed": "❌", "running": "🔄", "cancelled": "⏹️"}


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heal-deploy",
        description="Deploy a web project, repairing failed builds with an LLM.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    deploy_parser = subparsers.add_parser(
        "deploy", help="Deploy a project directory with automatic repair"
    )
    deploy_parser.add_argument("--dir", required=True, dest="directory", help="Project directory")
    deploy_parser.add_argument("--name", default=None, help="Site name (default: directory name)")
    deploy_parser.add_argument("--build-command", default="npm run build", help="Build command")
    deploy_parser.add_argument("--publish-dir", default="dist", help="Directory to publish")
    deploy_parser.add_argument(
        "--env", action="append", default=[], metavar="KEY=VALUE",
        help="Environment variable for the build (repeatable)",
    )
    deploy_parser.add_argument(
        "--max-attempts", type=int, default=None,
        help="Maximum deployment attempts (default from config)",
    )
    deploy_parser.add_argument(
        "--timeout", type=float, default=None,
        help="Overall deadline in seconds; the run is cancelled when it passes",
    )

    subparsers.add_parser("sites", help="List sites known to the hosting provider")

    # logs 子命令 - 查看部署日志
    logs_parser = subparsers.add_parser("logs", help="View deployment run logs")
    logs_parser.add_argument(
        "--list", "-l", action="store_true", dest="list_logs",
        help="List all available logs"
    )
    logs_parser.add_argument(
        "--latest", action="store_true",
        help="Show the latest deployment log"
    )
    logs_parser.add_argument(
        "--file", "-f", type=str,
        help="Show a specific log file"
    )

    return parser


def parse_env_pairs(pairs: List[str]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` strings; the value may itself contain ``=``."""
    env: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid --env value (expected KEY=VALUE): {pair}")
        env[key] = value
    return env


def _build_context(args: argparse.Namespace) -> CLIContext:
    return CLIContext(config=load_config(args.config))


def _print_attempt(record: AttemptRecord) -> None:
    if record.succeeded:
        console.print(f"  [green]✓[/green] Attempt {record.attempt_number}: deployed ({record.provenance.value} files)")
        return
    kind = record.classified_error.kind.value if record.classified_error else "unknown"
    console.print(
        f"  [red]✗[/red] Attempt {record.attempt_number} [{kind}]: {record.raw_message}",
        markup=False,
    )


def print_result(result: DeploymentResult, location: Optional[str] = None) -> None:
    console.rule()
    if result.success:
        console.print(f"🎉 [bold green]Deployed[/bold green] after {result.attempts} attempt(s)")
        console.print(f"🔗 Site:  {result.deploy_url}")
        console.print(f"⚙️  Admin: {result.admin_url}")
        if location:
            console.print(f"📂 Local: {location}", soft_wrap=True)
        return

    title = "Deployment cancelled" if result.cancelled else "Deployment failed"
    console.print(f"❌ [bold red]{title}[/bold red]")
    console.print(result.error_message or "", markup=False)
    if result.suggestions:
        console.print("\n💡 Suggestions:")
        for suggestion in result.suggestions:
            console.print(f"   • {suggestion}", markup=False)


def handle_deploy_command(args: argparse.Namespace, context: CLIContext) -> int:
    directory = Path(args.directory)
    deploy_config = DeploymentConfig(
        project_name=args.name or directory.resolve().name,
        build_command=args.build_command,
        publish_directory=args.publish_dir,
        environment_variables=parse_env_pairs(args.env),
    )

    console.print(f"🚀 Deploying [bold]{deploy_config.project_name}[/bold] from {directory}")
    workflow = DeploymentWorkflow(context.config)
    result = workflow.deploy_directory(
        directory,
        deploy_config,
        max_attempts=args.max_attempts,
        timeout=args.timeout,
        on_attempt=_print_attempt,
    )
    location = None
    if result.success:
        # 本地托管时，站点实际位于 file:// 路径下
        location = next((s.url for s in workflow.list_sites() if s.id == result.site_id), None)
    print_result(result, location)
    return 0 if result.success else 1


def handle_sites_command(context: CLIContext) -> int:
    sites = DeploymentWorkflow(context.config).list_sites()
    if not sites:
        console.print("📁 No sites deployed yet.")
        return 0

    table = Table(title="Sites")
    table.add_column("Name")
    table.add_column("ID")
    table.add_column("URL")
    for site in sites:
        table.add_row(site.name, site.id, site.url or "")
    console.print(table)
    return 0


def handle_logs_command(args: argparse.Namespace, context: CLIContext) -> int:
    """Handle the logs subcommand."""
    log_dir = Path(context.config.log_dir)

    if not log_dir.exists():
        console.print("📁 No deployment logs found. Run a deployment first.")
        return 0

    log_files = sorted(log_dir.glob("deploy_*.json"), key=lambda p: p.stat().st_mtime, reverse=True)

    if args.file:
        target_file = Path(args.file)
        if not target_file.exists():
            # 尝试在 log_dir 中查找
            target_file = log_dir / args.file
        if not target_file.exists():
            console.print(f"❌ Log file not found: {args.file}", markup=False)
            return 1
        show_log_file(target_file)
        return 0

    if not log_files:
        console.print("📁 No deployment logs found.")
        return 0

    if args.list_logs:
        table = Table(title=f"Deployment logs in {log_dir}")
        table.add_column("#", justify="right")
        table.add_column("Status")
        table.add_column("Project")
        table.add_column("Time")
        table.add_column("File")
        for i, log_file in enumerate(log_files, 1):
            try:
                with open(log_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError):
                table.add_row(str(i), "❓ error", "?", "?", log_file.name)
                continue
            status = data.get("status", "unknown")
            table.add_row(
                str(i),
                f"{_STATUS_EMOJI.get(status, '❓')} {status}",
                data.get("project_name", ""),
                (data.get("start_time") or "")[:19].replace("T", " "),
                log_file.name,
            )
        console.print(table)

    # 默认显示最新的；--list 与 --latest 可同时使用
    if args.latest or not args.list_logs:
        show_log_file(log_files[0])
    return 0


def show_log_file(log_file: Path) -> None:
    """Display a deployment log file."""
    with open(log_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    status = data.get("status", "unknown")
    console.rule(f"📄 {log_file.name}")
    console.print(f"📦 Project:  {data.get('project_name', 'N/A')}", markup=False)
    console.print(f"⏰ Started:  {data.get('start_time', 'N/A')}")
    console.print(f"⏱️  Ended:    {data.get('end_time', 'N/A')}")
    console.print(f"{_STATUS_EMOJI.get(status, '❓')} Status:   {status}")

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Outcome")
    table.add_column("Files")
    table.add_column("Kind")
    table.add_column("Message", overflow="fold")
    for attempt in data.get("attempts", []):
        error = attempt.get("classified_error") or {}
        table.add_row(
            str(attempt.get("attempt_number", "?")),
            attempt.get("outcome", "?"),
            attempt.get("provenance", "?"),
            error.get("kind", ""),
            attempt.get("raw_message", ""),
        )
    console.print(table)

    result = data.get("result") or {}
    if result.get("deploy_url"):
        console.print(f"🔗 {result['deploy_url']}")
    elif result.get("error_message"):
        console.print(f"❌ {result['error_message']}", markup=False)
    console.print(f"📄 Full log: {log_file}", markup=False)


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)

    if args.command == "deploy":
        return handle_deploy_command(args, context)
    if args.command == "sites":
        return handle_sites_command(context)
    if args.command == "logs":
        return handle_logs_command(args, context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return dispatch_command(args)
