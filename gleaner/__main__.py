"""
Worker entry point.

    python -m gleaner                                   # run until SIGINT/SIGTERM
    python -m gleaner --once                            # run a single tick and exit
    python -m gleaner --source feed https://x/feed.xml hourly
"""

import argparse
import asyncio
import signal

from gleaner.config.settings import get_settings
from gleaner.observability.logging import configure_logging
from gleaner.runtime.factory import build_service


async def run(once: bool = False, sources: list[list[str]] | None = None) -> None:
    settings = get_settings()
    logger = configure_logging(
        level=settings.observability.log_level,
        json_output=settings.observability.log_format == "json",
        log_file=settings.observability.log_file,
    )

    service = build_service(settings)
    await service.load()

    for source_type, locator, schedule in sources or []:
        await service.add_source(source_type, locator, schedule)

    if once:
        report = await service.run_tick()
        await service.stop()
        logger.info(
            "Single tick finished",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            skipped=len(report.skipped),
        )
        return

    stop_requested = asyncio.Event()

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    service.scheduler.start()
    logger.info("Worker running", app=settings.app_name, version=settings.app_version)

    await stop_requested.wait()
    logger.info("Shutdown requested")
    await service.stop(timeout=settings.scheduler.job_timeout_seconds)


def main() -> None:
    parser = argparse.ArgumentParser(prog="gleaner", description="Gleaner ingestion worker")
    parser.add_argument("--once", action="store_true", help="run one scheduler tick and exit")
    parser.add_argument(
        "--source",
        nargs=3,
        action="append",
        metavar=("TYPE", "LOCATOR", "SCHEDULE"),
        help="register a source before starting (repeatable)",
    )
    args = parser.parse_args()

    asyncio.run(run(once=args.once, sources=args.source))


if __name__ == "__main__":
    main()
