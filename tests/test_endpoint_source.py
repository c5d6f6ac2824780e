"""Tests for loading endpoint records from the XML feed."""

from unittest.mock import MagicMock, patch

import pytest

from o365sync.cache_manager import CacheManager
from o365sync.endpoint_source import fetch_endpoint_feed, load_endpoints, parse_endpoint_xml
from o365sync.models import EndpointKind

FEED = """<?xml version="1.0" encoding="utf-8"?>
<products updated="10/1/2026">
  <product name="EXO">
    <addresslist type="IPv4">
      <address>40.92.0.0/15</address>
      <address>40.97.1.1</address>
      <address>not-an-ip</address>
    </addresslist>
    <addresslist type="IPv6">
      <address>2a01:111:f400:0::/48</address>
    </addresslist>
    <addresslist type="URL">
      <address>*.outlook.com</address>
      <address> </address>
    </addresslist>
  </product>
  <product name="Yammer">
    <addresslist type="URL">
      <address>*.facebook.com</address>
    </addresslist>
    <addresslist type="FQDN">
      <address>yammer.com</address>
    </addresslist>
  </product>
</products>
"""


def test_parse_feed():
    records = parse_endpoint_xml(FEED)

    ipv4 = [r for r in records if r.kind is EndpointKind.IPV4]
    assert [(r.address, r.prefix_length) for r in ipv4] == [("40.92.0.0", 15), ("40.97.1.1", 32)]

    ipv6 = [r for r in records if r.kind is EndpointKind.IPV6]
    assert [(r.address, r.prefix_length) for r in ipv6] == [("2a01:111:f400::", 48)]

    urls = [(r.service, r.pattern) for r in records if r.kind is EndpointKind.URL]
    assert urls == [("EXO", "*.outlook.com"), ("Yammer", "*.facebook.com")]


def test_parse_rejects_invalid_xml():
    with pytest.raises(RuntimeError):
        parse_endpoint_xml("<products><product>")


def test_load_from_file(tmp_path):
    feed = tmp_path / "O365IPAddresses.xml"
    feed.write_text(FEED, encoding="utf-8")
    records = load_endpoints(feed_file=feed)
    assert len(records) == 5


def test_load_missing_file(tmp_path):
    with pytest.raises(RuntimeError):
        load_endpoints(feed_file=tmp_path / "missing.xml")


def test_fetch_uses_cache(tmp_path):
    cache = CacheManager(tmp_path, use_cache=True)
    resp = MagicMock(content=FEED.encode("utf-8"))

    with patch("o365sync.endpoint_source.requests.get", return_value=resp) as get:
        first = fetch_endpoint_feed("https://feed.example/o365.xml", cache_manager=cache)
        second = fetch_endpoint_feed("https://feed.example/o365.xml", cache_manager=cache)

    assert first == second == FEED.encode("utf-8")
    get.assert_called_once()
    resp.raise_for_status.assert_called_once()


def test_fetch_without_cache_reads_always(tmp_path):
    cache = CacheManager(tmp_path, use_cache=False)
    with patch("o365sync.endpoint_source.requests.get", return_value=MagicMock(content=FEED.encode("utf-8"))) as get:
        fetch_endpoint_feed("https://feed.example/o365.xml", cache_manager=cache)
        fetch_endpoint_feed("https://feed.example/o365.xml", cache_manager=cache)
    assert get.call_count == 2
    assert len(cache.list_cache_files()) == 1


def test_load_file_in_declared_non_utf8_encoding(tmp_path):
    feed = tmp_path / "O365IPAddresses.xml"
    feed.write_bytes(
        b'<?xml version="1.0" encoding="iso-8859-1"?>'
        b'<products><product name="Caf\xe9"><addresslist type="IPv4">'
        b"<address>10.0.0.0/8</address></addresslist></product></products>"
    )
    records = load_endpoints(feed_file=feed)
    assert [(r.service, r.address) for r in records] == [("Café", "10.0.0.0")]


def test_undecodable_feed_raises_runtime_error(tmp_path):
    feed = tmp_path / "O365IPAddresses.xml"
    feed.write_bytes(b'<?xml version="1.0" encoding="utf-8"?><products><product name="\xff\xfe"/></products>')
    with pytest.raises(RuntimeError):
        load_endpoints(feed_file=feed)
