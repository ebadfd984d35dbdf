import argparse
import signal
import threading

from loguru import logger

from app.core.config import get_settings
from app.db import init_db
from indexer import MultiChainIndexerService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index Stellar and Base call contract events")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle per configured chain and exit",
    )
    parser.add_argument(
        "--chain",
        choices=("stellar", "base"),
        action="append",
        default=None,
        help="Restrict to one chain (repeatable); defaults to every configured chain",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    init_db()

    service = MultiChainIndexerService.from_settings(settings, chains=args.chain)
    if not any(indexer.initialized for indexer in service.indexers):
        logger.warning("No chain is configured; set STELLAR_* or BASE_* settings")
        return

    if args.once:
        results = service.poll_once()
        for chain, ok in results.items():
            logger.info("{} poll cycle {}", chain, "completed" if ok else "did not complete")
        logger.info("Statistics: {}", service.statistics())
        service.close()
        return

    stop_requested = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received signal {}; stopping indexers", signum)
        stop_requested.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    service.start()
    try:
        stop_requested.wait()
    finally:
        service.close()


if __name__ == "__main__":
    main()
