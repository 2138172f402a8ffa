#!/usr/bin/env python3
"""Command line interface for the flowsmith artifact pipeline.

Usage:
    flowsmith [--root DIR] <command> [options]

Examples:
    # Move node content of every flow into files under nodes/
    flowsmith extract

    # Compile every flow and write the push-ready copies to dist/
    flowsmith compile --out

    # Validate compiled copies, writing deterministic fixes back to the flows
    flowsmith validate --fix

    # Show which flows changed since their last push
    flowsmith status

    # Push changed flows through the REST API and activate them
    flowsmith deploy --http --activate
"""

import argparse
import asyncio
import sys
from pathlib import Path

from flowsmith.boundary import CliPushBoundary, HttpPushBoundary, PushBoundary
from flowsmith.config import Settings, configure_logging
from flowsmith.db.ledger_store import create_ledger_store
from flowsmith.errors import FlowsmithError
from flowsmith.models.ledger import DeploymentStatus
from flowsmith.models.validation import ValidationReport
from flowsmith.services import (
    ChangeLedger,
    ContentCompiler,
    ContentExternalizer,
    ContractValidator,
    Deployer,
    StructuralValidator,
)
from flowsmith.storage.document_store import load_document, save_document
from flowsmith.storage.files import write_json


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{color}{text}{Colors.RESET}"


def out(text: str = "") -> None:
    """Print with immediate flush for non-TTY environments."""
    print(text, flush=True)


def _flow_paths(settings: Settings, files: list[str]) -> list[Path]:
    if not files:
        return settings.layout.flow_files()
    paths = []
    for name in files:
        path = Path(name)
        if not path.is_absolute() and not path.exists():
            path = settings.layout.flows_dir / name
        paths.append(path.resolve())
    return paths


def _ledger(settings: Settings) -> ChangeLedger:
    layout = settings.layout
    store = create_ledger_store(settings.ledger_backend, layout.ledger_file, layout.ledger_db)
    return ChangeLedger(layout, store)


def _print_report(name: str, report: ValidationReport) -> None:
    if report.valid and not report.warnings:
        out(colorize(f"✓ {name}", Colors.GREEN))
        return
    marker = colorize("✓", Colors.GREEN) if report.valid else colorize("✗", Colors.RED)
    out(f"{marker} {colorize(name, Colors.BOLD)}")
    for issue in report.errors:
        out(colorize(f"    • {issue.format()}", Colors.RED))
    for issue in report.warnings:
        out(colorize(f"    • {issue.format()}", Colors.YELLOW))


async def cmd_extract(settings: Settings, args: argparse.Namespace) -> int:
    externalizer = ContentExternalizer(settings.layout)
    if args.files:
        paths = _flow_paths(settings, args.files)
        results = [await externalizer.externalize_file(p) for p in paths]
    else:
        results = await externalizer.externalize_all()

    failed = 0
    for result in results:
        if result.error:
            failed += 1
            out(colorize(f"✗ {result.path.name}: {result.error}", Colors.RED))
        elif result.changed:
            out(colorize(f"✓ {result.path.name}: {len(result.records)} node(s)", Colors.GREEN))
            for record in result.records:
                out(colorize(f"    → {record.node}: {record.path}", Colors.DIM))
        else:
            out(colorize(f"  {result.path.name}: nothing to extract", Colors.DIM))
    return 1 if failed else 0


async def cmd_compile(settings: Settings, args: argparse.Namespace) -> int:
    compiler = ContentCompiler(settings.layout)
    output_dir = None
    if args.out is not None:
        output_dir = Path(args.out) if args.out else settings.layout.dist_dir
    if args.files:
        compiled = [await compiler.compile_file(p) for p in _flow_paths(settings, args.files)]
        failures: dict[str, str] = {}
        if output_dir is not None:
            for document in compiled:
                await write_json(output_dir / document.path.name, document.document)
    else:
        batch = await compiler.compile_all(output_dir)
        compiled, failures = batch.compiled, batch.failures

    for document in compiled:
        out(colorize(f"✓ {document.path.name}: {len(document.injected)} injected", Colors.GREEN))
        for warning in document.warnings:
            out(colorize(f"    • {warning}", Colors.YELLOW))
    for name, error in failures.items():
        out(colorize(f"✗ {name}: {error}", Colors.RED))
    if output_dir is not None:
        out(colorize(f"Output: {output_dir}", Colors.DIM))
    return 1 if failures else 0


async def cmd_validate(settings: Settings, args: argparse.Namespace) -> int:
    compiler = ContentCompiler(settings.layout)
    structural = StructuralValidator()
    contract = ContractValidator()
    invalid = 0

    for path in _flow_paths(settings, args.files):
        if args.fix:
            loaded = await load_document(path)
            changes = structural.auto_fix(loaded.data).changes
            changes += contract.auto_fix(loaded.data).changes
            if changes:
                await save_document(path, loaded.data)
                for change in changes:
                    out(colorize(f"  {change}", Colors.CYAN))

        compiled = await compiler.compile_file(path)
        report = structural.validate_raw(compiled.document)
        report.extend(contract.validate(compiled.document))
        _print_report(path.name, report)
        if not report.valid:
            invalid += 1
    return 1 if invalid else 0


async def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    ledger = _ledger(settings)
    if args.reset:
        await ledger.reset()
    if args.clear:
        await ledger.clear()
    for name in args.mark_edited or []:
        await ledger.mark_edited(_flow_paths(settings, [name])[0])

    summary = await ledger.status()
    colors = {
        DeploymentStatus.DEPLOYED: Colors.GREEN,
        DeploymentStatus.PENDING: Colors.YELLOW,
        DeploymentStatus.MODIFIED: Colors.CYAN,
    }
    out(colorize("=== Deployment status ===", Colors.BOLD))
    for flow in summary.workflows:
        label = colorize(f"{flow.status.value:<9}", colors[flow.status])
        deployed = f" (deployed {flow.deployed_at})" if flow.deployed_at else ""
        out(f"  {label} {flow.path}{colorize(deployed, Colors.DIM)}")
    out()
    out(f"Total: {summary.total}, deployed: {summary.deployed}, pending: {summary.pending}")
    return 0


def _boundary(settings: Settings, use_http: bool) -> PushBoundary:
    if use_http:
        return HttpPushBoundary(
            settings.n8n_api_url, settings.n8n_api_key, timeout=settings.push_timeout
        )
    return CliPushBoundary(settings.n8n_cli)


async def cmd_deploy(settings: Settings, args: argparse.Namespace) -> int:
    deployer = Deployer(
        settings.layout,
        _ledger(settings),
        _boundary(settings, args.http),
        artifact_dir=settings.artifact_dir,
        concurrency=settings.push_concurrency,
        timeout=settings.push_timeout,
        activate=args.activate,
    )
    if args.files:
        report = await deployer.deploy_paths(_flow_paths(settings, args.files))
    else:
        report = await deployer.deploy_changed(include_all=args.all)

    if not report.results:
        out(colorize("Nothing to deploy, all flows are up to date", Colors.GREEN))
        return 0
    for result in report.results:
        if result.success:
            note = "" if result.ledger_recorded else " (changed during push, still pending)"
            out(colorize(f"✓ {result.document_name}{note}", Colors.GREEN))
        else:
            out(colorize(f"✗ {result.document_name} [{result.stage.value}]: {result.summary}",
                         Colors.RED))
        for warning in result.warnings:
            out(colorize(f"    • {warning}", Colors.YELLOW))
    out()
    out(colorize(f"Deployed {len(report.succeeded)}/{len(report.results)}", Colors.BOLD))
    return 1 if report.failed else 0


COMMANDS = {
    "extract": cmd_extract,
    "compile": cmd_compile,
    "validate": cmd_validate,
    "status": cmd_status,
    "deploy": cmd_deploy,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowsmith",
        description="Manage workflow documents and their externalized content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Project root (default: FLOWSMITH_ROOT or the current directory)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--ledger-backend",
        choices=["json", "sqlite"],
        default=None,
        help="Change ledger storage (default: FLOWSMITH_LEDGER_BACKEND or json)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Move node content into files")
    extract.add_argument("files", nargs="*", help="Flow files (default: all)")

    compile_ = sub.add_parser("compile", help="Build push-ready copies of flows")
    compile_.add_argument("files", nargs="*", help="Flow files (default: all)")
    compile_.add_argument(
        "--out",
        "-o",
        nargs="?",
        const="",
        default=None,
        help="Write compiled copies here (default with no value: dist/)",
    )

    validate = sub.add_parser("validate", help="Validate compiled flows")
    validate.add_argument("files", nargs="*", help="Flow files (default: all)")
    validate.add_argument(
        "--fix",
        action="store_true",
        help="Write deterministic fixes back to the flow files first",
    )

    status = sub.add_parser("status", help="Show deployment status")
    status.add_argument("--reset", action="store_true", help="Mark every flow as pending")
    status.add_argument("--clear", action="store_true", help="Forget all ledger state")
    status.add_argument(
        "--mark-edited",
        action="append",
        metavar="FILE",
        help="Mark a flow as pending (repeatable)",
    )

    deploy = sub.add_parser("deploy", help="Push changed flows to the engine")
    deploy.add_argument("files", nargs="*", help="Push only these flow files")
    deploy.add_argument("--all", action="store_true", help="Push every flow, changed or not")
    deploy.add_argument("--activate", action="store_true", help="Activate flows after pushing")
    deploy.add_argument(
        "--http",
        action="store_true",
        help="Push through the REST API instead of the command line tool",
    )
    return parser


async def run(argv: list[str] | None = None) -> int:
    """Parse arguments and run one command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    overrides = {}
    if args.root:
        overrides["root"] = Path(args.root).resolve()
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.ledger_backend:
        overrides["ledger_backend"] = args.ledger_backend
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)

    try:
        return await COMMANDS[args.command](settings, args)
    except FlowsmithError as e:
        out(colorize(f"Error: {e}", Colors.RED))
        return 1
    except (OSError, ValueError) as e:
        out(colorize(f"Error: {e}", Colors.RED))
        return 1


def main() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        out(colorize("\nCancelled by user", Colors.YELLOW))
        sys.exit(130)


if __name__ == "__main__":
    main()
