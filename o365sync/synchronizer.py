import logging
from typing import List, Optional

from .checkpoint_client import CheckPointClient
from .classifier import desired_members, desired_patterns, object_name
from .diff import diff_members
from .models import EndpointKind, EndpointRecord, ServiceOutcome, SyncAction

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "orange"


def sync_network_group(
    client: CheckPointClient,
    service: str,
    records: List[EndpointRecord],
    kind: EndpointKind,
    prefix: str,
    color: Optional[str] = DEFAULT_COLOR,
    dry_run: bool = False,
) -> ServiceOutcome:
    """
    Make the service's network group contain exactly the desired networks.

    - group absent: create every network object, then the group with all members
    - group present and different: create the added network objects, then
      replace the group's member list with the full desired list
    - no difference: nothing beyond the initial read

    Removed members are only dropped from the group; their network objects are
    left in place. RemoteError propagates to the caller, calls already made
    stay in the session.
    """
    group_name = object_name(prefix, service, kind)
    members = desired_members(records, prefix, kind)
    desired = list(members)

    remote = client.fetch_group(group_name)
    diff = diff_members(desired, remote.members)

    if remote.exists and diff.is_empty:
        logger.info("Group %s is up to date (%s member(s))", group_name, len(desired))
        return ServiceOutcome(service, kind, group_name, SyncAction.UNCHANGED)

    action = SyncAction.UPDATED if remote.exists else SyncAction.CREATED
    outcome = ServiceOutcome(service, kind, group_name, action, list(diff.to_add), list(diff.to_remove))

    for name in diff.to_add:
        logger.info("  + %s", name)
    for name in diff.to_remove:
        logger.info("  - %s", name)

    if dry_run:
        logger.info("Dry run: group %s would be %s", group_name, action.value)
        return outcome

    # On the create path to_add is the whole desired list.
    for name in diff.to_add:
        rec = members[name]
        client.add_network(name, rec.address or "", rec.prefix_length or 0, kind)

    if remote.exists:
        client.set_group(group_name, desired)
    else:
        client.add_group(group_name, desired, color=color)

    return outcome


def sync_application_site(
    client: CheckPointClient,
    service: str,
    records: List[EndpointRecord],
    prefix: str,
    category: str,
    color: Optional[str] = DEFAULT_COLOR,
    description: Optional[str] = None,
    dry_run: bool = False,
) -> ServiceOutcome:
    """Make the service's application-site match the desired URL patterns."""
    site_name = object_name(prefix, service, EndpointKind.URL)
    desired = desired_patterns(records)

    remote = client.fetch_application_site(site_name)
    diff = diff_members(desired, remote.members)

    if remote.exists and diff.is_empty:
        logger.info("Application site %s is up to date (%s URL(s))", site_name, len(desired))
        return ServiceOutcome(service, EndpointKind.URL, site_name, SyncAction.UNCHANGED)

    action = SyncAction.UPDATED if remote.exists else SyncAction.CREATED
    outcome = ServiceOutcome(
        service, EndpointKind.URL, site_name, action, list(diff.to_add), list(diff.to_remove)
    )

    for url in diff.to_add:
        logger.info("  + %s", url)
    for url in diff.to_remove:
        logger.info("  - %s", url)

    if dry_run:
        logger.info("Dry run: application site %s would be %s", site_name, action.value)
        return outcome

    if remote.exists:
        client.set_application_site(site_name, desired, category)
    else:
        client.add_application_site(site_name, desired, category, color=color, description=description)

    return outcome
