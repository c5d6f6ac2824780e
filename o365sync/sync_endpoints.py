import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .checkpoint_client import CheckPointClient
from .classifier import classify_endpoints, object_name
from .errors import NamingCollisionError, RemoteError
from .models import EndpointKind, EndpointRecord, RunReport, ServiceOutcome, SyncAction
from .session import Credentials, ManagementSession
from .synchronizer import DEFAULT_COLOR, sync_application_site, sync_network_group

logger = logging.getLogger(__name__)

PublishDecision = Callable[[RunReport], bool]


def publish_when_changed(report: RunReport) -> bool:
    """Default decision: publish if anything was created or updated."""
    return bool(report.changed)


def _sync_services(
    client: CheckPointClient,
    grouped: Dict[str, List[EndpointRecord]],
    *,
    kind: EndpointKind,
    prefix: str,
    category: str,
    color: Optional[str],
    description: Optional[str],
    dry_run: bool,
) -> Tuple[List[ServiceOutcome], bool]:
    """Synchronize every service in order.

    Returns the outcomes and whether the loop stopped because the management
    session became invalid.
    """
    outcomes: List[ServiceOutcome] = []
    for service, service_records in grouped.items():
        logger.info("Processing %s %s endpoint(s) for service %s", len(service_records), kind.value, service)
        try:
            if kind is EndpointKind.URL:
                outcome = sync_application_site(
                    client,
                    service,
                    service_records,
                    prefix,
                    category,
                    color=color,
                    description=description,
                    dry_run=dry_run,
                )
            else:
                outcome = sync_network_group(
                    client,
                    service,
                    service_records,
                    kind,
                    prefix,
                    color=color,
                    dry_run=dry_run,
                )
        except (RemoteError, NamingCollisionError) as exc:
            logger.error("Failed to synchronize %s for service %s: %s", kind.value, service, exc)
            outcomes.append(
                ServiceOutcome(
                    service,
                    kind,
                    object_name(prefix, service, kind),
                    SyncAction.FAILED,
                    error=str(exc),
                )
            )
            if isinstance(exc, RemoteError) and exc.session_invalid:
                logger.error("Management session is no longer valid; skipping remaining services")
                return outcomes, True
            continue
        outcomes.append(outcome)
    return outcomes, False


def run_sync(
    records: Iterable[EndpointRecord],
    client: CheckPointClient,
    credentials: Credentials,
    *,
    kind: EndpointKind,
    prefix: str,
    category: str,
    service_filter: Optional[str] = None,
    blacklist: Optional[str] = None,
    color: Optional[str] = DEFAULT_COLOR,
    description: Optional[str] = None,
    dry_run: bool = False,
    decide: Optional[PublishDecision] = None,
    confirm: Optional[PublishDecision] = None,
) -> RunReport:
    """
    Main synchronization flow:
    - Classify the endpoint records and group them by service.
    - Log in and synchronize one group / application-site per service.
    - Publish or discard the session once, then log out.

    Behavior:
    - EmptyResultError (nothing to sync) and AuthError (login failed) propagate
      before any change is made.
    - A RemoteError while synchronizing a service marks that service failed
      and the run moves on to the next one, unless the error says the session
      is invalid: then the remaining services are skipped and the session is
      discarded.
    - When confirm is given, every service is first read and diffed without
      changes; confirm(plan) must return True before any mutating call.
    - Dry runs only read and diff; their session is always discarded.
    - Publish/discard/logout failures are recorded in the report.
    """
    grouped = classify_endpoints(records, kind, service_filter=service_filter, blacklist=blacklist)
    report = RunReport(kind=kind, dry_run=dry_run)
    decide = decide or publish_when_changed
    options = dict(kind=kind, prefix=prefix, category=category, color=color, description=description)

    with ManagementSession(client, credentials) as session:
        session_lost = False
        apply = not dry_run
        if apply and confirm is not None:
            outcomes, session_lost = _sync_services(client, grouped, dry_run=True, **options)
            plan = RunReport(kind=kind, outcomes=outcomes, dry_run=True)
            if session_lost or not plan.changed:
                apply = False
            elif not confirm(plan):
                logger.warning("Operator declined the planned changes; nothing was modified")
                apply = False
                # The report shows a plan that was never applied.
                report.dry_run = True
            if not apply:
                report.outcomes = outcomes

        if apply:
            report.outcomes, session_lost = _sync_services(client, grouped, dry_run=False, **options)
        elif dry_run:
            report.outcomes, session_lost = _sync_services(client, grouped, dry_run=True, **options)

        if report.dry_run or session_lost:
            publish = False
        elif not report.changed:
            logger.info("No differences found; nothing to publish")
            publish = False
        else:
            publish = decide(report)

        session.finish(publish=publish)

    report.published = session.published
    report.discarded = session.discarded
    report.publish_error = session.publish_error
    report.logout_error = session.logout_error

    logger.info(
        "Run finished: %s; %s",
        ", ".join(f"{k}={v}" for k, v in report.summary().items()),
        "published" if report.published else ("discarded" if report.discarded else "not committed"),
    )
    return report
