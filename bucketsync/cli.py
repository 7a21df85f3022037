"""CLI interface for bucketsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .config import config
from .exceptions import BucketSyncError, StorageAuthenticationError, SyncConfigError
from .output import OutputFormatter
from .storage import S3Connection
from .sync import SyncConfiguration, SyncEngine, load_sync_config_from_json

logger = logging.getLogger(__name__)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="bucketsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """bucketsync - Push local directories to an S3 bucket."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("bucketsync").setLevel(logging.DEBUG)
        # botocore is very chatty at debug level
        logging.getLogger("botocore").setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--access-key-id",
    prompt="Enter your access key ID",
    help="Storage access key ID",
)
@click.option(
    "--secret-access-key",
    prompt="Enter your secret access key",
    hide_input=True,
    help="Storage secret access key",
)
@click.option("--region", default=None, help="Default region")
@click.option("--bucket", default=None, help="Default bucket")
@click.pass_context
def init(
    ctx: Any,
    access_key_id: str,
    secret_access_key: str,
    region: Optional[str],
    bucket: Optional[str],
) -> None:
    """Store credentials in ~/.config/bucketsync/config."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.save_credentials(access_key_id, secret_access_key, region, bucket)
    except OSError as e:
        out.error(f"Could not save configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show the effective configuration."""
    out: OutputFormatter = ctx.obj["out"]

    info = {
        "configured": config.is_configured(),
        "config_file": str(config.get_config_path()),
        "region": config.region,
        "bucket": config.bucket,
        "endpoint_url": config.endpoint_url,
    }
    if out.json_output:
        out.output_json(info)
        return

    out.print_summary(
        "bucketsync status",
        [
            ("Credentials", "configured" if info["configured"] else "not configured"),
            ("Config file", info["config_file"]),
            ("Region", info["region"]),
            ("Bucket", info["bucket"] or "-"),
            ("Endpoint", info["endpoint_url"] or "default"),
        ],
    )


def build_configuration(
    directories: tuple[Path, ...],
    config_file: Optional[Path],
    **overrides: Any,
) -> SyncConfiguration:
    """Combine the config file, command line options and stored defaults.

    Command line values win over the config file, which wins over the
    environment and ``~/.config/bucketsync/config``.

    Raises:
        SyncConfigError: If the config file is invalid
    """
    if config_file is not None:
        cfg = load_sync_config_from_json(config_file)
    else:
        cfg = SyncConfiguration()

    if directories:
        cfg.directories = list(directories)

    for name, value in overrides.items():
        if value is not None:
            setattr(cfg, name, value)
    if cfg.ignore is None:
        cfg.ignore = []
    cfg.path = (cfg.path or "").strip("/")

    cfg.bucket = cfg.bucket or config.bucket or ""
    cfg.access_key_id = cfg.access_key_id or config.access_key_id
    cfg.secret_access_key = cfg.secret_access_key or config.secret_access_key
    cfg.endpoint_url = cfg.endpoint_url or config.endpoint_url
    if overrides.get("region") is None and config_file is None:
        cfg.region = config.region
    return cfg


@main.command()
@click.argument(
    "directories", nargs=-1, type=click.Path(file_okay=False, path_type=Path)
)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON sync configuration file",
)
@click.option("--bucket", "-b", help="Target bucket (created if missing)")
@click.option("--path", "-p", "prefix", help="Remote path prefix for all keys")
@click.option("--region", "-r", help="Bucket region")
@click.option("--access-key-id", help="Storage access key ID")
@click.option("--secret-access-key", help="Storage secret access key")
@click.option("--endpoint-url", help="Endpoint of an S3-compatible service")
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of parallel workers for hashing and uploads (default: 4)",
)
@click.option(
    "--retries",
    type=int,
    default=None,
    help="Retries per file after a failed upload (default: 0)",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Glob pattern of files to leave out (can be repeated)",
)
@click.option(
    "--exclude-dot-files", is_flag=True, help="Skip files and folders starting with ."
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be uploaded without uploading"
)
@click.pass_context
def sync(
    ctx: Any,
    directories: tuple[Path, ...],
    config_file: Optional[Path],
    bucket: Optional[str],
    prefix: Optional[str],
    region: Optional[str],
    access_key_id: Optional[str],
    secret_access_key: Optional[str],
    endpoint_url: Optional[str],
    workers: Optional[int],
    retries: Optional[int],
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
    dry_run: bool,
) -> None:
    """Upload new and changed files from DIRECTORIES to a bucket.

    Each directory is stored under PREFIX/<directory name>/. Files whose
    remote copy has the same MD5 are skipped, and remote objects are never
    deleted.

    Examples:
        bucketsync sync photos documents -b my-bucket -p backups
        bucketsync sync -c sync.json --dry-run
        bucketsync sync ./data -b my-bucket -i "*.tmp" --workers 8
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        cfg = build_configuration(
            directories,
            config_file,
            bucket=bucket,
            path=prefix,
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
            max_workers=workers,
            upload_retries=retries,
            ignore=list(ignore) if ignore else None,
            exclude_dot_files=True if exclude_dot_files else None,
            dry_run=True if dry_run else None,
        )
        cfg.validate()
    except SyncConfigError as e:
        out.error(f"Invalid configuration: {e}")
        ctx.exit(1)
        return  # Unreachable, but helps type checker

    if not out.quiet and not out.json_output:
        out.info(f"Bucket: {cfg.bucket} ({cfg.region})")
        out.info(f"Path: {cfg.path or '/'}")
        if cfg.dry_run:
            out.info("Dry run: No changes will be made")
        out.info("")

    engine_out = OutputFormatter(
        json_output=out.json_output, quiet=out.quiet or out.json_output
    )
    engine = SyncEngine(
        cfg,
        connection_factory=S3Connection.from_credentials,
        output=engine_out,
    )

    try:
        result = engine.run()
    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
        return
    except StorageAuthenticationError as e:
        out.error(f"Authentication failed: {e}")
        ctx.exit(1)
        return
    except BucketSyncError as e:
        out.error(f"Sync failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(result.to_dict())

    if not result.success:
        ctx.exit(1)
