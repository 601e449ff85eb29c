from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from bounty_scout.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from bounty_scout.factory import ScannerFactory
from bounty_scout.funnel import Funnel
from bounty_scout.logging_setup import configure_logging
from bounty_scout.metrics import MetricsCollector
from bounty_scout.notify import Broadcaster, LoggingNotifier
from bounty_scout.orchestrator import Orchestrator
from bounty_scout.storage import StorageBase, open_storage
from bounty_scout.urls import ReachabilityProbe

logger = logging.getLogger("bounty_scout.main")


def build_orchestrator(settings: Settings, storage: StorageBase, probe_links: bool = True) -> Orchestrator:
    metrics = MetricsCollector()
    probe: Optional[ReachabilityProbe] = None
    if probe_links and settings.validate_links_http:
        probe = ReachabilityProbe(timeout=settings.link_validation_timeout, allow_local=settings.allow_local_urls)

    broadcaster = Broadcaster([LoggingNotifier()], min_score=settings.min_score)
    funnel = Funnel(
        storage,
        broadcaster,
        heuristics=settings.heuristics,
        probe=probe,
        metrics=metrics,
        allow_local=settings.allow_local_urls,
    )
    scanners = ScannerFactory(settings).create_all()
    return Orchestrator(
        scanners,
        funnel,
        queue_size=settings.queue_size,
        poll_interval=settings.poll_interval_seconds,
        metrics=metrics,
    )


def run(config_path: Optional[str], once: bool, probe_links: bool, log_level: Optional[str]) -> int:
    try:
        settings = load_settings(config_path)
    except Exception as exc:  # noqa: BLE001
        print(f"Failed to load configuration: {exc}", file=sys.stderr)
        return 1

    configure_logging(log_level or settings.log_level, settings.log_path, secrets=[settings.github_token])

    try:
        storage = open_storage(settings)
    except Exception as exc:  # noqa: BLE001
        logger.critical("Failed to initialize storage at %s: %s", settings.storage_path, exc)
        return 1

    cancel = threading.Event()

    def _handle_signal(signum, frame) -> None:
        logger.info("Received signal %s, shutting down", signum)
        cancel.set()

    try:
        orchestrator = build_orchestrator(settings, storage, probe_links=probe_links)
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
        if once:
            outcomes = orchestrator.run_once(cancel)
            print(" ".join(f"{name}={count}" for name, count in outcomes.items()))
        else:
            orchestrator.run_forever(cancel)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        cancel.set()
    finally:
        storage.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Poll bounty sources and store scored opportunities")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to YAML config file")
    parser.add_argument("--once", action="store_true", help="Run a single scan cycle and exit")
    parser.add_argument("--no-probe", action="store_true", help="Skip HTTP reachability checks on links")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)")

    args = parser.parse_args(argv)
    return run(args.config, once=args.once, probe_links=not args.no_probe, log_level=args.log_level)


if __name__ == "__main__":
    sys.exit(main())
