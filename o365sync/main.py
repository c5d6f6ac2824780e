import logging
import os
import sys
from typing import Callable, Optional

import requests

from .cache_manager import CacheManager
from .checkpoint_client import CheckPointClient
from .config import Settings, load_settings
from .endpoint_source import load_endpoints
from .errors import AuthError, EmptyResultError
from .logging_config import configure_logging
from .models import RunReport
from .storage import save_run_report
from .sync_endpoints import run_sync

logger = logging.getLogger(__name__)


def _print_outcomes(title: str, report: RunReport) -> None:
    print(title)
    for o in report.outcomes:
        print(f"  {o.object_name}: {o.action.value} (+{len(o.to_add)} / -{len(o.to_remove)})")
        if o.error:
            print(f"    error: {o.error}")


def _ask(question: str) -> bool:
    answer = input(f"{question} [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def _prompt_apply(plan: RunReport) -> bool:
    _print_outcomes("Planned changes (nothing modified yet):", plan)
    return _ask("Apply these changes?")


def _prompt_publish(report: RunReport) -> bool:
    _print_outcomes("Pending changes:", report)
    return _ask("Publish these changes?")


def _auto_publish(report: RunReport) -> bool:
    if report.failed:
        logger.error(
            "%s service(s) failed; discarding instead of publishing a partial change set.",
            len(report.failed),
        )
        return False
    return True


def publish_decision(mode: str) -> Callable[[RunReport], bool]:
    """Map the configured publish mode to a decision callable."""
    if mode == "prompt":
        return _prompt_publish
    if mode == "never":
        return lambda report: False
    return _auto_publish


def confirm_decision(mode: str) -> Optional[Callable[[RunReport], bool]]:
    """Operator confirmation before any change is made; only in prompt mode."""
    if mode == "prompt":
        return _prompt_apply
    return None


def _exit_code(report: RunReport) -> int:
    if report.failed or report.publish_error:
        return 2
    return 0


def run(settings: Settings) -> int:
    cache_manager = CacheManager(cache_dir=settings.cache_dir, use_cache=settings.use_cached_data)

    try:
        records = load_endpoints(
            feed_url=settings.feed_url,
            feed_file=settings.feed_file,
            timeout=settings.feed_timeout,
            cache_manager=cache_manager,
        )
    except (RuntimeError, requests.RequestException) as exc:
        logger.error("Failed to load endpoint feed: %s", exc)
        return 1

    mgmt = settings.management
    client = CheckPointClient(
        host=mgmt.host,
        port=mgmt.port,
        verify_ssl=mgmt.verify_ssl,
        ca_bundle=mgmt.ca_bundle,
        timeout=mgmt.timeout,
        domain=mgmt.domain,
    )

    try:
        report = run_sync(
            records,
            client,
            settings.credentials,
            kind=settings.kind,
            prefix=settings.prefix,
            category=settings.category or "",
            service_filter=settings.service,
            blacklist=settings.blacklist,
            color=settings.color,
            description=settings.description,
            dry_run=settings.dry_run,
            decide=publish_decision(settings.publish_mode),
            confirm=confirm_decision(settings.publish_mode),
        )
    except (EmptyResultError, AuthError, ValueError) as exc:
        logger.error("Synchronization aborted: %s", exc)
        return 1

    save_run_report(settings.sync_data_dir, report)
    return _exit_code(report)


def main() -> int:
    # Configure logging early so load_settings() warnings/errors are visible.
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        settings = load_settings()
    except RuntimeError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    configure_logging(settings.log_level, settings.log_dir)
    logger.info(
        "Synchronizing %s endpoints to %s (prefix=%s, service=%s, dry_run=%s, publish=%s)",
        settings.kind.value,
        settings.management.host,
        settings.prefix,
        settings.service or "all",
        settings.dry_run,
        settings.publish_mode,
    )

    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
