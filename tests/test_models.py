"""Unit tests for the data model invariants."""

import pytest

from o365sync.models import (
    DiffResult,
    EndpointKind,
    EndpointRecord,
    RemoteGroupObject,
    RunReport,
    ServiceOutcome,
    SyncAction,
)


class TestEndpointRecord:
    def test_ipv4_record(self):
        rec = EndpointRecord(service="EXO", kind=EndpointKind.IPV4, address="40.97.0.0", prefix_length=15)
        assert rec.address == "40.97.0.0"

    def test_url_record_rejects_address(self):
        with pytest.raises(ValueError):
            EndpointRecord(service="EXO", kind=EndpointKind.URL, address="1.2.3.4", pattern="*.x.com")

    def test_ip_record_requires_prefix(self):
        with pytest.raises(ValueError):
            EndpointRecord(service="EXO", kind=EndpointKind.IPV4, address="1.2.3.4")

    def test_ip_record_rejects_pattern(self):
        with pytest.raises(ValueError):
            EndpointRecord(
                service="EXO", kind=EndpointKind.IPV6, address="::", prefix_length=0, pattern="*.x.com"
            )

    @pytest.mark.parametrize(
        "kind,prefix",
        [(EndpointKind.IPV4, 33), (EndpointKind.IPV6, 129), (EndpointKind.IPV4, -1)],
    )
    def test_prefix_out_of_range(self, kind, prefix):
        with pytest.raises(ValueError):
            EndpointRecord(service="EXO", kind=kind, address="10.0.0.0", prefix_length=prefix)


def test_kind_parse_is_case_insensitive():
    assert EndpointKind.parse("ipv6") is EndpointKind.IPV6
    assert EndpointKind.parse(" URL ") is EndpointKind.URL
    with pytest.raises(ValueError):
        EndpointKind.parse("IPv5")


def test_remote_group_members_are_unique_and_ordered():
    remote = RemoteGroupObject(name="g", exists=True, members=["b", "a", "b"])
    assert remote.members == ["b", "a"]
    assert RemoteGroupObject.absent("g").exists is False


def test_diff_result_rejects_overlap():
    with pytest.raises(ValueError):
        DiffResult(to_add=("a",), to_remove=("a",))
    assert DiffResult().is_empty


def test_run_report_summary_and_dict():
    report = RunReport(kind=EndpointKind.IPV4)
    report.outcomes.append(ServiceOutcome("EXO", EndpointKind.IPV4, "O365_EXO_IPv4", SyncAction.CREATED, ["a"]))
    report.outcomes.append(
        ServiceOutcome("SPO", EndpointKind.IPV4, "O365_SPO_IPv4", SyncAction.FAILED, error="boom")
    )

    assert report.summary() == {"created": 1, "updated": 0, "unchanged": 0, "failed": 1}
    assert [o.service for o in report.failed] == ["SPO"]
    assert [o.service for o in report.changed] == ["EXO"]

    data = report.to_dict()
    assert data["kind"] == "IPv4"
    assert data["outcomes"][1]["error"] == "boom"
