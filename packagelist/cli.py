"""CLI entry point: packagelist.

Subcommands:
    packagelist check-redirects -i packages.json              # Redirects + 404s only
    packagelist check-dependencies -i packages.json --limit 20
    packagelist audit packages.json                            # Both passes (nightly)
    packagelist validate [URL ...] -p packages.json            # Pull-request check
    packagelist add-packages URL ... / remove-packages URL ... # Manual edits
    packagelist apply-deny-list -p packages.json -d denylist.json
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import NoReturn

import click

from packagelist.core.config import Settings
from packagelist.core.logging import setup_logging
from packagelist.errors import URLSyntaxError, ValidatorError
from packagelist.pipeline import (
    EXIT_ERROR,
    EXIT_OK,
    RunReport,
    run_add_packages,
    run_apply_deny_list,
    run_audit,
    run_remove_packages,
    validate_additions,
)

_DEFAULT_PACKAGES = "packages.json"
_DEFAULT_DENY_LIST = "denylist.json"

_path = click.Path(dir_okay=False, path_type=Path)
_existing = click.Path(exists=True, dir_okay=False, path_type=Path)


def _settings(concurrency: int | None) -> Settings:
    return Settings.from_env().with_overrides(concurrency=concurrency)


def _check_urls(urls: tuple[str, ...]) -> list[str]:
    for url in urls:
        if not url.startswith("https://"):
            raise URLSyntaxError(url)
    return list(urls)


def _body(urls: tuple[str, ...]) -> str:
    """Package URLs from the arguments, else from ``GH_BODY`` (issue/PR text)."""
    body = " ".join(urls) or os.environ.get("GH_BODY", "")
    if not body.strip():
        click.echo("Error: no package URLs given (pass URLs or set GH_BODY)", err=True)
        sys.exit(EXIT_ERROR)
    return body


def _finish(report: RunReport) -> None:
    click.echo(report.render())
    sys.exit(report.exit_code)


def _fail(exc: ValidatorError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(EXIT_ERROR)


concurrency_option = click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Units of work in flight (default: PACKAGELIST_CONCURRENCY or 10)",
)
limit_option = click.option(
    "--limit",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum number of new dependencies to validate",
)
deny_list_option = click.option(
    "-d",
    "--deny-list",
    type=_path,
    default=None,
    help="Deny list whose URLs are never added",
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """Maintain the canonical package list."""
    setup_logging("DEBUG" if verbose else None)


@main.command("check-redirects")
@click.option("-i", "--input", "input_path", type=_existing, required=True, help="Package list")
@click.option("-o", "--output", "output_path", type=_path, default=None, help="Output file")
@concurrency_option
def check_redirects(input_path: Path, output_path: Path | None, concurrency: int | None) -> None:
    """Replace redirected URLs and drop deleted repositories."""
    try:
        report = asyncio.run(
            run_audit(input_path, output_path, _settings(concurrency), check_dependencies=False)
        )
    except ValidatorError as exc:
        _fail(exc)
    _finish(report)


@main.command("check-dependencies")
@click.option("-i", "--input", "input_path", type=_existing, required=True, help="Package list")
@click.option("-o", "--output", "output_path", type=_path, default=None, help="Output file")
@limit_option
@deny_list_option
@concurrency_option
def check_dependencies(
    input_path: Path,
    output_path: Path | None,
    limit: int | None,
    deny_list: Path | None,
    concurrency: int | None,
) -> None:
    """Validate every package and admit its unknown dependencies."""
    try:
        report = asyncio.run(
            run_audit(
                input_path,
                output_path,
                _settings(concurrency),
                check_redirects=False,
                limit=limit,
                deny_list_path=deny_list,
            )
        )
    except ValidatorError as exc:
        _fail(exc)
    _finish(report)


@main.command()
@click.argument("packages", type=_existing, default=_DEFAULT_PACKAGES)
@click.option("-o", "--output", "output_path", type=_path, default=None, help="Output file")
@limit_option
@deny_list_option
@concurrency_option
def audit(
    packages: Path,
    output_path: Path | None,
    limit: int | None,
    deny_list: Path | None,
    concurrency: int | None,
) -> None:
    """Nightly audit: redirects, then dependency discovery."""
    try:
        report = asyncio.run(
            run_audit(
                packages,
                output_path,
                _settings(concurrency),
                limit=limit,
                deny_list_path=deny_list,
            )
        )
    except ValidatorError as exc:
        _fail(exc)
    _finish(report)


@main.command()
@click.argument("urls", nargs=-1)
@click.option("-p", "--packages", type=_existing, default=_DEFAULT_PACKAGES, help="Package list")
@click.option("--upstream", default=None, help="Published list to diff against")
@concurrency_option
def validate(
    urls: tuple[str, ...],
    packages: Path,
    upstream: str | None,
    concurrency: int | None,
) -> None:
    """Validate new packages (given URLs, or those missing upstream)."""
    try:
        targets = _check_urls(urls) if urls else None
        report = asyncio.run(
            validate_additions(
                packages,
                _settings(concurrency),
                urls=targets,
                upstream_url=upstream,
            )
        )
    except ValidatorError as exc:
        _fail(exc)
    _finish(report)


@main.command("add-packages")
@click.argument("urls", nargs=-1)
@click.option("-p", "--packages", type=_existing, default=_DEFAULT_PACKAGES, help="Package list")
@click.option("-d", "--deny-list", type=_path, default=_DEFAULT_DENY_LIST, help="Deny list")
def add_packages_cmd(urls: tuple[str, ...], packages: Path, deny_list: Path) -> None:
    """Add packages from the arguments or GH_BODY."""
    body = _body(urls)
    try:
        added = run_add_packages(packages, body, deny_list)
    except ValidatorError as exc:
        _fail(exc)
    for url in added:
        click.echo(f"Added {url}")
    if not added:
        click.echo("No new packages added")
    sys.exit(EXIT_OK)


@main.command("remove-packages")
@click.argument("urls", nargs=-1)
@click.option("-p", "--packages", type=_existing, default=_DEFAULT_PACKAGES, help="Package list")
@click.option("-d", "--deny-list", type=_path, default=_DEFAULT_DENY_LIST, help="Deny list")
@click.option("--notes", default=None, help="Deny list note (default: GH_ISSUE)")
def remove_packages_cmd(
    urls: tuple[str, ...],
    packages: Path,
    deny_list: Path,
    notes: str | None,
) -> None:
    """Remove packages and add them to the deny list."""
    body = _body(urls)
    notes = notes if notes is not None else os.environ.get("GH_ISSUE", "")
    try:
        removed = run_remove_packages(packages, body, deny_list, notes)
    except ValidatorError as exc:
        _fail(exc)
    for url in removed:
        click.echo(f"Removed {url}")
    if not removed:
        click.echo("No packages removed")
    sys.exit(EXIT_OK)


@main.command("apply-deny-list")
@click.option("-p", "--packages", type=_existing, default=_DEFAULT_PACKAGES, help="Package list")
@click.option("-d", "--deny-list", type=_existing, default=_DEFAULT_DENY_LIST, help="Deny list")
def apply_deny_list_cmd(packages: Path, deny_list: Path) -> None:
    """Drop every denied package from the list."""
    try:
        removed = run_apply_deny_list(packages, deny_list)
    except ValidatorError as exc:
        _fail(exc)
    click.echo(f"Removed {removed} denied package(s)")
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
