# src/blobcopy/cli.py
"""Command-line interface for the blobcopy tool."""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from blobcopy.config import AppConfig, Config, load_location
from blobcopy.exceptions import BlobCopyError
from blobcopy.models import CopyProgress, CopyResult, Endpoint, Location
from blobcopy.signals import GracefulShutdown
from blobcopy.summary import RunSummary

logger: logging.Logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["azure", "urllib3", "aiohttp"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


async def main_async(config: Config, single_object: bool) -> RunSummary:
    """
    Asynchronously run the copy and collect its results.

    Args:
        config (Config): The run configuration.
        single_object (bool): Copy only the object named by the endpoints
            instead of the whole source container.

    Returns:
        RunSummary: Totals over all processed objects.
    """
    # Lazily import to keep the CLI fast when only printing help
    from blobcopy.azure_backend import AzureBlobBackend
    from blobcopy.engine import ReplicationEngine

    progress: Progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TimeElapsedColumn(),
        transient=True,
    )
    tasks: Dict[str, TaskID] = {}

    def on_progress(name: str, copy_progress: CopyProgress) -> None:
        if name not in tasks:
            tasks[name] = progress.add_task(name, total=copy_progress.total_bytes)
        progress.update(
            tasks[name],
            completed=copy_progress.bytes_copied or 0,
            total=copy_progress.total_bytes,
        )

    results: List[CopyResult] = []
    async with GracefulShutdown() as shutdown_event:
        async with AzureBlobBackend(config.app.account_url_template) as backend:
            engine: ReplicationEngine = ReplicationEngine(
                backend,
                config.app,
                shutdown_event=shutdown_event,
                on_progress=on_progress,
            )
            with progress:
                if single_object:
                    results.append(
                        await engine.copy_object(config.source, config.destination)
                    )
                else:
                    async for result in engine.copy_all_objects(
                        config.source, config.destination
                    ):
                        results.append(result)
                        if result.object_name in tasks:
                            progress.remove_task(tasks.pop(result.object_name))

    return RunSummary.from_results(results)


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("--source-account", help="Source storage account name.")
@click.option("--source-container", help="Source container name.")
@click.option("--source-key", help="Source account key. Omit for public containers.")
@click.option(
    "--source-url",
    help="Direct (optionally pre-signed) URL of a single source object. "
    "Takes precedence over the source account options.",
)
@click.option("--destination-account", help="Destination storage account name.")
@click.option("--destination-container", help="Destination container name.")
@click.option("--destination-key", help="Destination account key.")
@click.option(
    "--blob-name",
    help="Copy only this object. Without it the whole container is copied.",
)
@click.option(
    "--async",
    "asynchronous",
    is_flag=True,
    default=False,
    help="Return once the copies are started instead of waiting for them.",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Copy even if the destination already holds an identical object.",
)
@click.option(
    "--poll-interval",
    type=float,
    default=0.5,
    help="Seconds between copy status checks.",
    show_default=True,
)
@click.option(
    "--max-wait",
    type=float,
    default=1800.0,
    help="Seconds to wait for a single copy before reporting it as pending.",
    show_default=True,
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Copy blobs between storage containers with server-side copies.

    Copies a single blob (--blob-name or --source-url) or every blob of the
    source container into the destination container, possibly in another
    account. The storage service pulls the data itself; objects already
    identical on the destination are skipped unless --force is given.

    Any account option not given on the command line is read from the
    BLOBCOPY_SOURCE_* and BLOBCOPY_DESTINATION_* environment variables,
    which may also be set in a .env file.
    """
    load_dotenv()
    setup_logging(kwargs["log_level"])

    try:
        source_location: Location = load_location(
            "source",
            {
                "account_name": kwargs["source_account"],
                "container": kwargs["source_container"],
                "account_key": kwargs["source_key"],
                "url": kwargs["source_url"],
            },
            allow_url=True,
        )
        destination_location: Location = load_location(
            "destination",
            {
                "account_name": kwargs["destination_account"],
                "container": kwargs["destination_container"],
                "account_key": kwargs["destination_key"],
            },
        )
        blob_name: Optional[str] = kwargs["blob_name"]
        source: Endpoint = Endpoint(
            location=source_location,
            object_name=blob_name,
            asynchronous=kwargs["asynchronous"],
            force=kwargs["force"],
        )
        destination: Endpoint = Endpoint(
            location=destination_location, object_name=blob_name
        )
        config: Config = Config(
            source=source,
            destination=destination,
            app=AppConfig(
                poll_interval_s=kwargs["poll_interval"],
                max_wait_s=kwargs["max_wait"],
            ),
        )

        single_object: bool = blob_name is not None or source.is_direct_url
        summary: RunSummary = asyncio.run(main_async(config, single_object))
    except BlobCopyError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)

    if source.asynchronous:
        logger.info("All blobs copied asynchronously")
    else:
        logger.info(
            f"All blobs copied in {summary.total_elapsed_seconds} seconds "
            f"(median {summary.median_elapsed_s:.1f}s, "
            f"p90 {summary.p90_elapsed_s:.1f}s)"
        )
    logger.info(f"Processed {summary.total} objects: {summary.describe_counts()}")

    if summary.has_failures:
        logger.error(f"Failed to copy: {', '.join(summary.failed)}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
