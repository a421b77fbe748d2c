"""sp-upload: push a local file into a SharePoint document library."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from dotenv import load_dotenv
from rich.logging import RichHandler

from . import __version__
from .cli_progress import ChunkProgress, console, render_upload_plan
from .errors import StorageError
from .models import CHUNK_ALIGNMENT, UploadConfig

CREDENTIAL_VARS = {
    "tenant_id": "SHAREPOINT_TENANT_ID",
    "client_id": "SHAREPOINT_CLIENT_ID",
    "client_secret": "SHAREPOINT_CLIENT_SECRET",
}


class CLIError(RuntimeError):
    """Invalid invocation or environment."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route log records through rich on stderr.

    Warnings (rate limits, server-error backoff) are shown by default;
    --silent keeps only errors. Returns the effective level name.
    """
    if debug:
        level = logging.DEBUG
    elif log_level:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise CLIError(f"unknown log level: {log_level}")
    elif silent:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=debug, show_path=False, markup=False)],
        force=True,
    )
    if level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLevelName(level)


def _load_environment(env_file: Optional[Path]) -> Optional[Path]:
    """Load SHAREPOINT_* settings from ``env_file`` (or ./.env); set variables win."""
    if env_file is not None and not env_file.is_file():
        raise CLIError(f"env file not found: {env_file}")
    path = env_file or Path(".env")
    if not path.is_file():
        return None
    load_dotenv(path, override=False)
    return path


def _read_credentials() -> Dict[str, Optional[str]]:
    missing = [name for name in CREDENTIAL_VARS.values() if not os.getenv(name)]
    if missing:
        raise CLIError(f"missing environment variables: {', '.join(missing)}")

    credentials: Dict[str, Optional[str]] = {key: os.getenv(name) for key, name in CREDENTIAL_VARS.items()}
    credentials["drive_id"] = os.getenv("SHAREPOINT_DRIVE_ID")
    credentials["site"] = os.getenv("SHAREPOINT_SITE")
    if not credentials["drive_id"] and not credentials["site"]:
        raise CLIError("set SHAREPOINT_DRIVE_ID or SHAREPOINT_SITE")
    return credentials


def _normalize_dest(dest: str) -> str:
    value = dest.strip().strip("/")
    if not value:
        raise CLIError("destination must name a file")
    return value


def _parse_chunk_size(value: str) -> int:
    """argparse type: positive multiple of 320 KiB (accepts a ``k``/``m`` suffix)."""
    text = value.strip().lower()
    multiplier = 1
    if text.endswith("k"):
        multiplier, text = 1024, text[:-1]
    elif text.endswith("m"):
        multiplier, text = 1024 * 1024, text[:-1]
    try:
        size = int(text) * multiplier
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid chunk size: {value}")
    if size <= 0 or size % CHUNK_ALIGNMENT:
        raise argparse.ArgumentTypeError(
            f"chunk size must be a positive multiple of {CHUNK_ALIGNMENT} bytes, got {size}"
        )
    return size


async def _upload(source: Path, dest: str, prefix: str, options: Dict[str, Any], config: UploadConfig) -> None:
    from .adapter import SharepointAdapter
    from .connector import SharepointConnector

    connector = SharepointConnector.from_credentials(**_read_credentials())
    total_size = source.stat().st_size

    async with SharepointAdapter(connector, prefix=prefix) as adapter:
        with source.open("rb") as stream:
            if total_size <= config.direct_write_limit:
                await adapter.write(dest, stream.read(), options)
                return
            with ChunkProgress(source.name, total_size, config) as progress:
                await adapter.write_stream(dest, stream, options, progress)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sp-upload",
        description="Upload a local file to a SharePoint document library.",
    )
    parser.add_argument("source", type=Path, help="Local file to upload")
    parser.add_argument("dest", help="Destination path in the library (example: Reports/q1.pdf)")
    parser.add_argument(
        "--prefix",
        default=None,
        help="Library folder the destination is relative to (default: SHAREPOINT_PREFIX or /)",
    )
    parser.add_argument(
        "--chunk-size",
        type=_parse_chunk_size,
        default=None,
        help="Bytes per upload-session chunk, a multiple of 320k (default 3200k)",
    )
    parser.add_argument("--mime-type", default=None, help="Content-Type for single-request uploads")
    parser.add_argument("--env-file", type=Path, default=None, help="Read SHAREPOINT_* variables from this file")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="Log every chunk and request")
    verbosity.add_argument("--silent", action="store_true", help="Only log errors")
    verbosity.add_argument("--log-level", default=None, help="Explicit log level (DEBUG/INFO/WARNING/ERROR)")
    parser.add_argument("--version", action="version", version=f"sp-upload {__version__}")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        env_path = _load_environment(args.env_file)
        level = _setup_logging(args.debug, args.silent, args.log_level)
        source = args.source.expanduser()
        if not source.is_file():
            raise CLIError(f"source is not a file: {source}")
        dest = _normalize_dest(args.dest)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    prefix = args.prefix or os.getenv("SHAREPOINT_PREFIX", "/")
    options: Dict[str, Any] = {"chunk_size": args.chunk_size, "mimeType": args.mime_type}
    config = UploadConfig().with_overrides(options)

    render_upload_plan(
        str(source),
        f"{prefix.rstrip('/')}/{dest}",
        source.stat().st_size,
        config,
        {
            "Drive": os.getenv("SHAREPOINT_DRIVE_ID") or os.getenv("SHAREPOINT_SITE"),
            "Env File": env_path,
            "Logging": level,
        },
    )

    try:
        asyncio.run(_upload(source, dest, prefix, options, config))
    except (CLIError, StorageError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
