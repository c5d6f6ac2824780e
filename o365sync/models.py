from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class EndpointKind(str, Enum):
    """Address family of an endpoint record (values match the feed's type tags)."""

    IPV4 = "IPv4"
    IPV6 = "IPv6"
    URL = "URL"

    @classmethod
    def parse(cls, value: str) -> "EndpointKind":
        raw = (value or "").strip().lower()
        for kind in cls:
            if kind.value.lower() == raw:
                return kind
        raise ValueError(f"Unknown endpoint kind: {value!r} (expected IPv4, IPv6 or URL)")


_MAX_PREFIX = {EndpointKind.IPV4: 32, EndpointKind.IPV6: 128}


@dataclass(frozen=True)
class EndpointRecord:
    """
    One desired network fact for a service family.

    IPv4/IPv6 records carry address + prefix_length, URL records carry the
    raw wildcard pattern (not yet escaped).
    """

    service: str
    kind: EndpointKind
    address: Optional[str] = None
    prefix_length: Optional[int] = None
    pattern: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind is EndpointKind.URL:
            if self.pattern is None or self.address is not None or self.prefix_length is not None:
                raise ValueError(f"URL record for {self.service!r} must carry only a pattern")
            return

        if self.pattern is not None or not self.address or self.prefix_length is None:
            raise ValueError(
                f"{self.kind.value} record for {self.service!r} must carry address and prefix_length only"
            )
        if not 0 <= self.prefix_length <= _MAX_PREFIX[self.kind]:
            raise ValueError(
                f"Prefix length {self.prefix_length} out of range for {self.kind.value} address {self.address}"
            )


@dataclass
class RemoteGroupObject:
    """Current state of a group or application-site on the management server."""

    name: str
    exists: bool
    members: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Server lists may repeat entries; keep first occurrence.
        self.members = list(dict.fromkeys(self.members))

    @classmethod
    def absent(cls, name: str) -> "RemoteGroupObject":
        return cls(name=name, exists=False, members=[])


@dataclass(frozen=True)
class DiffResult:
    to_add: Tuple[str, ...] = ()
    to_remove: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        overlap = set(self.to_add) & set(self.to_remove)
        if overlap:
            raise ValueError(f"Members both added and removed: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class ServiceOutcome:
    """Result of synchronizing the object that owns one service's endpoints."""

    service: str
    kind: EndpointKind
    object_name: str
    action: SyncAction
    to_add: List[str] = field(default_factory=list)
    to_remove: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "kind": self.kind.value,
            "object_name": self.object_name,
            "action": self.action.value,
            "to_add": list(self.to_add),
            "to_remove": list(self.to_remove),
            "error": self.error,
        }


@dataclass
class RunReport:
    """Per-service outcomes of one synchronization run plus the terminal action taken."""

    kind: EndpointKind
    outcomes: List[ServiceOutcome] = field(default_factory=list)
    dry_run: bool = False
    published: bool = False
    discarded: bool = False
    publish_error: Optional[str] = None
    logout_error: Optional[str] = None

    @property
    def failed(self) -> List[ServiceOutcome]:
        return [o for o in self.outcomes if o.action is SyncAction.FAILED]

    @property
    def changed(self) -> List[ServiceOutcome]:
        return [o for o in self.outcomes if o.action in (SyncAction.CREATED, SyncAction.UPDATED)]

    def summary(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in SyncAction}
        for o in self.outcomes:
            counts[o.action.value] += 1
        return counts

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "dry_run": self.dry_run,
            "published": self.published,
            "discarded": self.discarded,
            "publish_error": self.publish_error,
            "logout_error": self.logout_error,
            "summary": self.summary(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
