#!/usr/bin/env python3
# Path: gib_validator/cli/main.py
"""
GIB Validator CLI
=================

Command-line front end for validation, rendering and asset administration.

Admin commands log in with the configured admin credentials unless
--username/--password are given.
"""

import sys
import json
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.syntax import Syntax
from rich.logging import RichHandler

from gib_validator.core.config_loader import ConfigLoader
from gib_validator.core.logger import configure_logging
from gib_validator.exceptions import GibValidatorError
from gib_validator.models.reload import ReloadReport, ReloadStatus
from gib_validator.models.validation import ValidationResponse
from gib_validator.models.versioning import AssetVersion, SyncPreview, VersionStatus
from gib_validator.service import GibValidatorService
from gib_validator.sync.packages import PACKAGE_DEFINITIONS


console = Console()

_STATUS_COLORS = {
    ReloadStatus.OK: 'green',
    ReloadStatus.SUCCESS: 'green',
    ReloadStatus.PARTIAL: 'yellow',
    ReloadStatus.FAILED: 'red',
    VersionStatus.PENDING: 'yellow',
    VersionStatus.APPLIED: 'green',
    VersionStatus.REJECTED: 'red',
}


def setup_logging(config: ConfigLoader, verbose: bool = False) -> None:
    """Route validator logs through a rich console handler."""
    handler = RichHandler(rich_tracebacks=True, console=console, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    configure_logging(config, console_handler=handler)
    if verbose:
        logging.getLogger('gib_validator').setLevel(logging.DEBUG)
        handler.setLevel(logging.DEBUG)


def _truncate(text: Optional[str], width: int = 90) -> str:
    text = text or ''
    return text[:width] + "..." if len(text) > width else text


# ==============================================================================
# DISPLAY
# ==============================================================================

def display_validation(file_path: Path, response: ValidationResponse) -> None:
    if not response.success:
        console.print(Panel(
            f"[red bold]✗ NOT VALIDATED[/red bold]\nFile: {file_path.name}\n{response.error_message}",
            title="Validation Result",
            border_style="red"
        ))
        return

    result = response.result
    color = "green" if result.is_valid else "red"
    symbol = "✓" if result.is_valid else "✗"
    lines = [
        f"[{color} bold]{symbol} {'VALID' if result.is_valid else 'INVALID'}[/{color} bold]",
        f"File: {file_path.name}",
        f"Type: {result.detected_document_type}",
        f"XSD: {result.applied_xsd} ({'valid' if result.valid_schema else 'invalid'})",
        f"Schematron: {result.applied_schematron} ({'valid' if result.valid_schematron else 'invalid'})",
    ]
    if result.suppression_info:
        info = result.suppression_info
        lines.append(
            f"Suppressed: {info.suppressed_count}/{info.total_raw_errors} "
            f"(profile: {info.profile or '-'})"
        )
    console.print(Panel("\n".join(lines), title="Validation Result", border_style=color))

    if result.schema_validation_errors:
        table = Table(title="XSD Errors", show_header=True, header_style="bold red")
        table.add_column("#", style="dim", width=4)
        table.add_column("Message", style="white")
        for i, message in enumerate(result.schema_validation_errors, 1):
            table.add_row(str(i), _truncate(message, 120))
        console.print(table)

    if result.schematron_validation_errors:
        table = Table(title="Schematron Errors", show_header=True, header_style="bold red")
        table.add_column("#", style="dim", width=4)
        table.add_column("Rule", style="cyan")
        table.add_column("Message", style="white")
        for i, error in enumerate(result.schematron_validation_errors, 1):
            table.add_row(str(i), error.rule_id or "-", _truncate(error.message))
        console.print(table)

    for message in result.configuration_errors:
        console.print(f"[yellow]Configuration:[/yellow] {message}")


def display_reload(report: ReloadReport) -> None:
    table = Table(title=f"Reload (generation {report.generation})", show_header=True)
    table.add_column("Component", style="bold")
    table.add_column("Status")
    table.add_column("Loaded", justify="right")
    table.add_column("ms", justify="right", style="dim")
    table.add_column("Errors", style="red")
    for component in report.components:
        color = _STATUS_COLORS[component.status]
        table.add_row(
            component.component_name,
            f"[{color}]{component.status.value}[/{color}]",
            str(component.loaded_count),
            str(component.duration_ms),
            _truncate("; ".join(component.errors), 60),
        )
    console.print(table)


def display_previews(previews: List[SyncPreview]) -> None:
    for preview in previews:
        if not preview.success:
            console.print(Panel(
                f"[red]{preview.error}[/red]", title=f"{preview.package_id}: failed", border_style="red"
            ))
            continue
        summary = preview.version.files_summary
        console.print(Panel(
            f"Version: {preview.version.id}\n"
            f"Added: [green]{summary.added}[/green] | Removed: [red]{summary.removed}[/red] | "
            f"Modified: [yellow]{summary.modified}[/yellow] | Unchanged: {summary.unchanged}\n"
            f"Suppression warnings: {len(preview.warnings)}",
            title=f"{preview.version.display_name} ({preview.package_id})",
            border_style="yellow"
        ))
        changed = [diff for diff in preview.file_diffs if diff.status.value != 'UNCHANGED']
        if changed:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Status")
            table.add_column("Path", style="cyan")
            table.add_column("Old", justify="right", style="dim")
            table.add_column("New", justify="right", style="dim")
            for diff in changed:
                table.add_row(diff.status.value, diff.path, str(diff.old_size), str(diff.new_size))
            console.print(table)
        if preview.warnings:
            table = Table(title="Suppression Warnings", show_header=True, header_style="bold yellow")
            table.add_column("Severity")
            table.add_column("Profile", style="cyan")
            table.add_column("Rule")
            table.add_column("Message")
            for warning in preview.warnings:
                table.add_row(warning.severity.value, warning.profile_name, warning.rule_id,
                              _truncate(warning.message, 70))
            console.print(table)


def display_versions(versions: List[AssetVersion]) -> None:
    table = Table(title="Asset Versions", show_header=True)
    table.add_column("Version", style="cyan")
    table.add_column("Package")
    table.add_column("Status")
    table.add_column("+/-/~/=", justify="right")
    table.add_column("Timestamp", style="dim")
    for version in versions:
        color = _STATUS_COLORS[version.status]
        s = version.files_summary
        table.add_row(
            version.id,
            version.package_id,
            f"[{color}]{version.status.value}[/{color}]",
            f"{s.added}/{s.removed}/{s.modified}/{s.unchanged}",
            version.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
        )
    console.print(table)


# ==============================================================================
# COMMANDS
# ==============================================================================

def _admin_token(service: GibValidatorService, args) -> str:
    username = args.username or service.config.get('auth_username')
    password = args.password or service.config.get('auth_password')
    return service.login(username, password)


def cmd_validate(service: GibValidatorService, args) -> int:
    if not args.file.exists():
        console.print(f"[red]Error:[/red] File not found: {args.file}")
        return 1
    response = service.validate(
        args.file.read_bytes(),
        source_file_name=args.file.name,
        ubl_sub_type=args.ubl_type,
        profile_name=args.profile,
        suppressions=args.suppress,
    )
    if args.json:
        console.print_json(json.dumps(response.to_dict(), ensure_ascii=False))
    else:
        display_validation(args.file, response)
    return 0 if response.success and response.result.is_valid else 1


def cmd_transform(service: GibValidatorService, args) -> int:
    if not args.file.exists():
        console.print(f"[red]Error:[/red] File not found: {args.file}")
        return 1
    result = service.transform(
        args.file.read_bytes(),
        args.type,
        transformer=args.xslt.read_bytes() if args.xslt else None,
        watermark_text=args.watermark,
        use_embedded_xslt=args.embedded,
    )
    output = args.output or args.file.with_suffix('.html')
    output.write_bytes(result.output_bytes)

    table = Table(title="Transform", show_header=False)
    table.add_column("Header", style="bold")
    table.add_column("Value")
    for header, value in result.to_headers().items():
        table.add_row(header, value)
    console.print(table)
    console.print(f"[green]Output saved:[/green] {output}")
    return 0


def cmd_profiles(service: GibValidatorService, args) -> int:
    if args.action == 'show':
        profile = service.get_profile(args.name)
        console.print(Syntax(json.dumps(profile.to_dict(), indent=2, ensure_ascii=False), "json"))
        return 0
    if args.action == 'delete':
        service.delete_profile(_admin_token(service, args), args.name)
        console.print(f"[green]Profile deleted:[/green] {args.name}")
        return 0

    table = Table(title="Validation Profiles", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Extends")
    table.add_column("Suppressions", justify="right")
    table.add_column("Description")
    for profile in service.list_profiles():
        table.add_row(profile.name, profile.extends or "-", str(len(profile.suppressions)),
                      _truncate(profile.description, 60))
    console.print(table)
    return 0


def cmd_sync(service: GibValidatorService, args) -> int:
    if args.action == 'pending':
        pending = service.sync_pending()
        if not pending:
            console.print("[dim]No staged versions awaiting approval[/dim]")
        display_previews(pending)
        return 0

    token = _admin_token(service, args)
    if args.action == 'preview':
        previews = asyncio.run(service.sync_preview(token, args.package))
        display_previews(previews)
        return 0 if all(preview.success for preview in previews) else 1

    if not args.package:
        console.print(f"[red]Error:[/red] sync {args.action} needs a package id")
        return 1
    if args.action == 'approve':
        version = service.sync_approve(token, args.package)
    else:
        version = service.sync_reject(token, args.package)
    display_versions([version])
    if version.reload_report is not None:
        display_reload(version.reload_report)
    return 0


def cmd_versions(service: GibValidatorService, args) -> int:
    if args.diff and args.file:
        detail = service.version_file_diff(args.diff, args.file)
        console.print(f"[bold]{detail.path}[/bold] ({detail.status.value})")
        if detail.is_binary:
            console.print(f"[dim]Binary file: {detail.old_size} -> {detail.new_size} bytes[/dim]")
        elif detail.unified_diff:
            console.print(Syntax(detail.unified_diff, "diff"))
        return 0
    if args.diff:
        table = Table(title=f"Files of {args.diff}", show_header=True)
        table.add_column("Status")
        table.add_column("Path", style="cyan")
        for diff in service.version_diff(args.diff):
            table.add_row(diff.status.value, diff.path)
        console.print(table)
        return 0
    display_versions(service.list_versions(args.package))
    return 0


def cmd_reload(service: GibValidatorService, args) -> int:
    report = service.reload(_admin_token(service, args), args.kind or None)
    display_reload(report)
    return 0 if report.status is ReloadStatus.SUCCESS else 1


COMMANDS = {
    'validate': cmd_validate,
    'transform': cmd_transform,
    'profiles': cmd_profiles,
    'sync': cmd_sync,
    'versions': cmd_versions,
    'reload': cmd_reload,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gib-validator',
        description="GIB e-Document Validator - validation, rendering and asset sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate an invoice with a profile
  gib-validator validate invoice.xml --profile lenient

  # Render with a watermark
  gib-validator transform invoice.xml --type INVOICE --watermark TASLAK

  # Stage the e-Invoice package, inspect it, then approve
  gib-validator sync preview efatura
  gib-validator versions --diff 2026-01-01-10-00-00-efatura
  gib-validator sync approve efatura
        """
    )
    parser.add_argument('--version', action='version', version='GIB Validator 1.0.0')
    parser.add_argument('--env-file', type=Path, help='Path to .env file')
    parser.add_argument('--assets-dir', type=Path, help='Override GIB_ASSETS_DIR')
    parser.add_argument('--username', help='Admin username for admin commands')
    parser.add_argument('--password', help='Admin password for admin commands')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    validate_parser = subparsers.add_parser('validate', help='Validate an XML document')
    validate_parser.add_argument('file', type=Path, help='Path to XML document')
    validate_parser.add_argument('-p', '--profile', help='Validation profile name')
    validate_parser.add_argument('--ubl-type', help="UBL-TR rule-set 'type' parameter (e.g. efatura)")
    validate_parser.add_argument('--suppress', help="Ad-hoc suppressions, e.g. 'R-001,text:Signature'")
    validate_parser.add_argument('--json', action='store_true', help='Print the raw JSON result')

    transform_parser = subparsers.add_parser('transform', help='Render an XML document to HTML')
    transform_parser.add_argument('file', type=Path, help='Path to XML document')
    transform_parser.add_argument('-t', '--type', default='INVOICE', help='Transform type (default: INVOICE)')
    transform_parser.add_argument('-x', '--xslt', type=Path, help='Custom XSLT file')
    transform_parser.add_argument('-w', '--watermark', help='Watermark text')
    transform_parser.add_argument('-e', '--embedded', action='store_true', help='Prefer the embedded XSLT')
    transform_parser.add_argument('-o', '--output', type=Path, help='Output file (default: <file>.html)')

    profiles_parser = subparsers.add_parser('profiles', help='List, show or delete validation profiles')
    profiles_parser.add_argument('action', nargs='?', default='list', choices=['list', 'show', 'delete'])
    profiles_parser.add_argument('name', nargs='?', help='Profile name')

    sync_parser = subparsers.add_parser('sync', help='Stage, approve or reject GIB packages')
    sync_parser.add_argument('action', choices=['preview', 'pending', 'approve', 'reject'])
    sync_parser.add_argument(
        'package', nargs='?',
        help=f"Package id ({', '.join(p.id for p in PACKAGE_DEFINITIONS)}); all packages for preview when omitted"
    )

    versions_parser = subparsers.add_parser('versions', help='Asset version history')
    versions_parser.add_argument('--package', help='Only versions of this package')
    versions_parser.add_argument('--diff', metavar='VERSION_ID', help='List the files of a version')
    versions_parser.add_argument('--file', help='Show the content diff of one file (with --diff)')

    reload_parser = subparsers.add_parser('reload', help='Reload profiles, schemas, rule sets and templates')
    reload_parser.add_argument(
        '--kind', action='append', choices=['PROFILES', 'SCHEMA', 'SCHEMATRON', 'TEMPLATES'],
        help='Only reload this asset kind (repeatable)'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0
    if args.command == 'profiles' and args.action != 'list' and not args.name:
        parser.error(f"profiles {args.action} needs a profile name")

    overrides = {'assets_dir': args.assets_dir} if args.assets_dir else None
    config = ConfigLoader(env_file=args.env_file, overrides=overrides)
    setup_logging(config, args.verbose)

    service = None
    try:
        service = GibValidatorService(config)
        service.start(auto_sync=False)
        return COMMANDS[args.command](service, args)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130

    except (GibValidatorError, ValueError, OSError) as e:
        console.print(f"\n[red bold]Error:[/red bold] {e}")
        if args.verbose:
            console.print_exception()
        return 1

    finally:
        if service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
