import logging
import re
from typing import Dict, Iterable, List, Optional

from .errors import EmptyResultError, NamingCollisionError
from .models import EndpointKind, EndpointRecord

logger = logging.getLogger(__name__)


def _compile_blacklist(blacklist: Optional[str]) -> Optional["re.Pattern[str]"]:
    if not blacklist:
        return None
    try:
        return re.compile(blacklist, flags=re.IGNORECASE)
    except re.error as exc:
        raise ValueError(f"Invalid blacklist pattern {blacklist!r}: {exc}") from exc


def classify_endpoints(
    records: Iterable[EndpointRecord],
    kind: EndpointKind,
    service_filter: Optional[str] = None,
    blacklist: Optional[str] = None,
) -> Dict[str, List[EndpointRecord]]:
    """Select the records to synchronize and group them by service.

    - records of other services are dropped when service_filter is set
    - records of other kinds are always dropped
    - for URL records, blank patterns and patterns matching the blacklist
      (case-insensitive search) are dropped

    Raises:
        EmptyResultError: when nothing is left after filtering.
    """
    blacklist_re = _compile_blacklist(blacklist) if kind is EndpointKind.URL else None
    grouped: Dict[str, List[EndpointRecord]] = {}

    for rec in records:
        if service_filter and rec.service != service_filter:
            continue
        if rec.kind is not kind:
            continue
        if kind is EndpointKind.URL:
            pattern = (rec.pattern or "").strip()
            if not pattern:
                continue
            if blacklist_re is not None and blacklist_re.search(pattern):
                logger.info("Blacklisted URL pattern for %s skipped: %s", rec.service, pattern)
                continue
        grouped.setdefault(rec.service, []).append(rec)

    if not grouped:
        scope = f"service {service_filter!r}" if service_filter else "any service"
        raise EmptyResultError(f"No {kind.value} endpoints found for {scope}")

    for service, recs in grouped.items():
        logger.debug("Classified %s %s endpoint(s) for %s", len(recs), kind.value, service)
    return grouped


def member_name(prefix: str, kind: EndpointKind, address: str) -> str:
    """Name of the network object for an address, e.g. O365_IPv4_40.97.0.0."""
    return f"{prefix}_{kind.value}_{address}"


def object_name(prefix: str, service: str, kind: EndpointKind) -> str:
    """Name of the group / application-site that owns one service's endpoints."""
    return f"{prefix}_{service}_{kind.value}"


def desired_members(records: Iterable[EndpointRecord], prefix: str, kind: EndpointKind) -> Dict[str, EndpointRecord]:
    """
    Map member name -> record, in record order.

    Records with the same address but a different prefix length share a name;
    the first one wins. Different addresses landing on the same name raise
    NamingCollisionError.
    """
    members: Dict[str, EndpointRecord] = {}
    for rec in records:
        name = member_name(prefix, kind, rec.address or "")
        seen = members.get(name)
        if seen is None:
            members[name] = rec
            continue
        if seen.address != rec.address:
            raise NamingCollisionError(
                f"Member name {name!r} used by {seen.address}/{seen.prefix_length} "
                f"and {rec.address}/{rec.prefix_length}"
            )
        if seen.prefix_length != rec.prefix_length:
            logger.debug(
                "Duplicate address %s with prefix /%s ignored (keeping /%s)",
                rec.address,
                rec.prefix_length,
                seen.prefix_length,
            )
    return members


def sanitize_url_pattern(raw: str) -> str:
    """Turn a wildcard host pattern into a regular expression.

    Dots are escaped before asterisks are expanded so the dot in ".*" stays a
    metacharacter: "*.contoso.com" -> ".*\\.contoso\\.com".
    """
    return raw.strip().replace(".", "\\.").replace("*", ".*")


def desired_patterns(records: Iterable[EndpointRecord]) -> List[str]:
    patterns: List[str] = []
    for rec in records:
        sanitized = sanitize_url_pattern(rec.pattern or "")
        if sanitized and sanitized not in patterns:
            patterns.append(sanitized)
    return patterns
