"""Terminal driver for the primary device's side of the tracker."""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from expiry_tracker.app_logging import configure_logging
from expiry_tracker.client.models import ImageFile
from expiry_tracker.client.polling import PollState
from expiry_tracker.config import ClientSettings
from expiry_tracker.containers import ClientContainer, build_client_container

_logger = logging.getLogger(__name__)


def _print_link(deep_link: str) -> None:
    print(f"Open this link on the capture device: {deep_link}")


def _print_board(container: ClientContainer, verb: str) -> None:
    counts = container.board.counts()
    print(
        f"{verb} {counts.total} images "
        f"(valid={counts.valid} expiring={counts.expiring} "
        f"expired={counts.expired})"
    )
    print(container.board.to_csv(), end="")


def read_image_file(path: Path) -> ImageFile:
    content_type, _ = mimetypes.guess_type(path.name)
    return ImageFile(
        filename=path.name,
        content_type=content_type or "application/octet-stream",
        data=path.read_bytes(),
    )


async def run_handoff(container: ClientContainer) -> int:
    """Run one handoff, wait for analysis and print the resulting board."""
    try:
        result = await container.poller.run()
        if result.state is not PollState.IMAGES_RECEIVED:
            print(f"Handoff ended: {result.state.value}")
            return 1
        await container.pipeline.wait_idle()
        _print_board(container, "Received")
        return 0
    finally:
        await container.close_resources()


async def run_local(container: ClientContainer, paths: list[Path]) -> int:
    """Analyze images selected on this device and print the resulting board."""
    try:
        files = [read_image_file(path) for path in paths]
        container.pipeline.add_files(files)
        await container.pipeline.wait_idle()
        _print_board(container, "Analyzed")
        return 0
    finally:
        await container.close_resources()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expiry-handoff",
        description="Read product names and expiry dates from photos.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        type=Path,
        help="Local images to analyze (default: start a handoff instead)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Analyze local images, or start a handoff against the configured server."""
    argv = argv if argv is not None else sys.argv[1:]
    args = build_parser().parse_args(argv)
    configure_logging()
    container = build_client_container(ClientSettings(), open_link=_print_link)
    _logger.info("Using handoff server %s", container.settings.server_url)
    if args.files:
        return asyncio.run(run_local(container, args.files))
    return asyncio.run(run_handoff(container))


if __name__ == "__main__":
    raise SystemExit(main())
