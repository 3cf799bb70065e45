"""CLI interface for PyBunny."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Optional

import click
from click.shell_completion import get_completion_class

from . import __version__
from .api import StorageZoneClient
from .cli_progress import SyncProgressDisplay
from .config import API_KEY_ENV, ENDPOINT_ENV, STORAGE_KEY_ENV, Settings
from .exceptions import BunnyConfigError, BunnyError
from .output import OutputFormatter
from .purge import PurgeClient
from .retry import RetryPolicy
from .sync import SyncEngine, SyncJob, SyncReport
from .utils import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LOCKFILE,
    DEFAULT_MAX_ATTEMPTS,
    normalize_prefix,
)

logger = logging.getLogger(__name__)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Enable debug logging output")
@click.version_option(__version__)
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, debug: bool) -> None:
    """PyBunny - Sync your files to a bunny.net storage zone.

    pybunny makes a path inside a storage zone exactly equal to a local
    directory, uploading only what changed. HTML pages are uploaded after
    other assets so stylesheets and images are in place first. A lockfile
    in the storage zone keeps two sync jobs from running at once.
    """
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    # Environment is read once here; nothing below the CLI touches it
    ctx.obj["settings"] = Settings.from_env()

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pybunny").setLevel(logging.DEBUG)
        # httpx logs every request line at INFO; keep it at WARNING
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.WARNING)


def _display_report(out: OutputFormatter, report: SyncReport) -> None:
    if out.json_output:
        out.output_json(report.to_dict())
        return

    title = "Dry run summary" if report.dry_run else "Sync summary"
    rows = [
        ("Uploaded" if not report.dry_run else "Would upload", str(report.uploaded)),
        ("Deleted" if not report.dry_run else "Would delete", str(report.deleted)),
        ("Unchanged", str(report.unchanged)),
    ]
    if not report.dry_run:
        rows.append(("Failed", str(len(report.failed))))
    out.output_table(title, rows)

    for item in report.failed:
        out.error(f"{item.path}: {item.error_kind.value} {item.message}".rstrip())
    if report.cancelled:
        out.warning("Sync stopped before completion")
    elif report.ok and not report.dry_run:
        out.success("Sync complete")


async def _run_sync(
    settings: Settings,
    storage_zone: str,
    job: SyncJob,
    out: OutputFormatter,
    verbose: bool,
) -> SyncReport:
    policy = RetryPolicy(max_attempts=settings.max_attempts)
    with SyncProgressDisplay(out, verbose=verbose) as display:
        async with StorageZoneClient(
            settings.require_storage_key(),
            storage_zone,
            endpoint=settings.endpoint,
            timeout=settings.timeout,
        ) as client:
            engine = SyncEngine(
                client, out, policy=policy, on_event=display.handle_event
            )
            return await engine.sync(job)


@main.command()
@click.argument("local_path", type=click.Path(path_type=Path))
@click.argument("storage_zone")
@click.option(
    "--path",
    "-p",
    "remote_path",
    default="/",
    show_default=True,
    help="Path inside the storage zone to sync to",
)
@click.option(
    "--concurrency",
    "-c",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent requests (default: number of CPUs)",
)
@click.option("--verbose", "-v", is_flag=True, help="Print every file operation")
@click.option("--dry-run", is_flag=True, help="Show what would change without syncing")
@click.option("--force", "-f", is_flag=True, help="Sync despite a dangling lockfile")
@click.option(
    "--lockfile",
    default=DEFAULT_LOCKFILE,
    show_default=True,
    help="Lockfile name; no sync happens while it exists in the storage zone",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Never delete remote paths starting with this prefix (repeatable)",
)
@click.option(
    "--endpoint",
    "-e",
    envvar=ENDPOINT_ENV,
    default=None,
    help="Storage endpoint host name (default: storage.bunnycdn.com)",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_ATTEMPTS,
    show_default=True,
    help="Attempts per request before giving up on transient errors",
)
@click.option(
    "--trust-modified",
    is_flag=True,
    help="For remote files without a checksum, compare size and modification "
    "time instead of re-uploading (best effort)",
)
@click.option(
    "--force-upload", is_flag=True, help="Upload every file, even unchanged ones"
)
@click.option(
    "--access-key",
    "-k",
    envvar=STORAGE_KEY_ENV,
    help=f"Storage zone password (default: ${STORAGE_KEY_ENV})",
)
@click.pass_context
def sync(
    ctx: Any,
    local_path: Path,
    storage_zone: str,
    remote_path: str,
    concurrency: Optional[int],
    verbose: bool,
    dry_run: bool,
    force: bool,
    lockfile: str,
    ignore: tuple[str, ...],
    endpoint: Optional[str],
    max_attempts: int,
    trust_modified: bool,
    force_upload: bool,
    access_key: Optional[str],
) -> None:
    """Sync a local folder to a path within a storage zone.

    LOCAL_PATH: Local directory to mirror

    STORAGE_ZONE: Name of the storage zone to sync to

    Examples:
        pybunny sync docs/book my-zone --path thumper
        pybunny sync site my-zone -c 8 --verbose
        pybunny sync site my-zone --dry-run
        pybunny sync site my-zone -i downloads/    # keep remote-only downloads
    """
    out: OutputFormatter = ctx.obj["out"]
    settings: Settings = ctx.obj["settings"].with_overrides(
        storage_key=access_key, endpoint=endpoint, max_attempts=max_attempts
    )

    if not settings.storage_key:
        out.error(f"Storage access key not configured. Set {STORAGE_KEY_ENV}.")
        ctx.exit(1)

    try:
        job = SyncJob(
            local=local_path,
            remote_path=normalize_prefix(remote_path),
            concurrency=concurrency or os.cpu_count() or DEFAULT_CONCURRENCY,
            dry_run=dry_run,
            force_lock=force,
            lockfile=lockfile,
            ignore=tuple(ignore),
            force_upload=force_upload,
            trust_modified=trust_modified,
        )
    except ValueError as e:
        out.error(f"Invalid arguments: {e}")
        ctx.exit(1)
        return

    report: Optional[SyncReport] = None
    try:
        report = asyncio.run(_run_sync(settings, storage_zone, job, out, verbose))
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
    except BunnyError as e:
        out.error(f"{type(e).__name__}: {e}")
        ctx.exit(1)

    if report is None:
        return
    _display_report(out, report)
    ctx.exit(0 if report.ok else 1)


async def _run_purge(settings: Settings, zone_id: int, cache_tag: Optional[str]) -> None:
    async with PurgeClient(
        settings.require_api_key(),
        api_url=settings.api_url,
        timeout=settings.timeout,
        policy=RetryPolicy(max_attempts=settings.max_attempts),
    ) as client:
        await client.purge_zone(zone_id, cache_tag=cache_tag)


@main.command("purge-zone")
@click.argument("zone_id", type=click.IntRange(min=1))
@click.option("--cache-tag", "-t", help="Only purge objects with this cache tag")
@click.option(
    "--api-key",
    "-k",
    envvar=API_KEY_ENV,
    help=f"Account API key (default: ${API_KEY_ENV})",
)
@click.pass_context
def purge_zone(
    ctx: Any, zone_id: int, cache_tag: Optional[str], api_key: Optional[str]
) -> None:
    """Purge an entire pull zone from the CDN cache.

    ZONE_ID: Numeric ID of the pull zone to purge
    """
    out: OutputFormatter = ctx.obj["out"]
    settings: Settings = ctx.obj["settings"].with_overrides(api_key=api_key)

    try:
        asyncio.run(_run_purge(settings, zone_id, cache_tag))
    except BunnyConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    except BunnyError as e:
        out.error(f"Failed to purge pull zone {zone_id}: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json({"zone_id": zone_id, "purged": True})
    else:
        out.success(f"Purged {zone_id}")


async def _run_purge_url(settings: Settings, url: str) -> None:
    async with PurgeClient(
        settings.require_api_key(),
        api_url=settings.api_url,
        timeout=settings.timeout,
        policy=RetryPolicy(max_attempts=settings.max_attempts),
    ) as client:
        await client.purge_url(url)


@main.command("purge-url")
@click.argument("url")
@click.option(
    "--api-key",
    "-k",
    envvar=API_KEY_ENV,
    help=f"Account API key (default: ${API_KEY_ENV})",
)
@click.pass_context
def purge_url(ctx: Any, url: str, api_key: Optional[str]) -> None:
    """Purge a URL from the CDN cache.

    URL: URL to purge; a trailing * is allowed as a wildcard
    """
    out: OutputFormatter = ctx.obj["out"]
    settings: Settings = ctx.obj["settings"].with_overrides(api_key=api_key)

    try:
        asyncio.run(_run_purge_url(settings, url))
    except BunnyConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    except BunnyError as e:
        out.error(f"Failed to purge {url}: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json({"url": url, "purged": True})
    else:
        out.success(f"Purged {url}")


@main.command()
@click.option(
    "--shell",
    "-s",
    type=click.Choice(["bash", "zsh", "fish"]),
    default="bash",
    show_default=True,
)
def completions(shell: str) -> None:
    """Print a shell completion script.

    Example: pybunny completions --shell zsh > ~/.zfunc/_pybunny
    """
    completion_class = get_completion_class(shell)
    if completion_class is None:
        raise click.UsageError(f"Unsupported shell: {shell}")
    completion = completion_class(main, {}, "pybunny", "_PYBUNNY_COMPLETE")
    click.echo(completion.source())


if __name__ == "__main__":
    main()
