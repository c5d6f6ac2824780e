"""Load Office 365 endpoint records from Microsoft's XML endpoint feed.

Feed layout:

    <products>
      <product name="o365">
        <addresslist type="IPv4"><address>13.107.6.152/31</address>...</addresslist>
        <addresslist type="IPv6">...</addresslist>
        <addresslist type="URL"><address>*.office.com</address>...</addresslist>
      </product>
      ...
    </products>
"""
import ipaddress
import logging
from pathlib import Path
from typing import List, Optional, Union
from xml.etree.ElementTree import ParseError

import requests
from defusedxml.ElementTree import fromstring

from .cache_manager import CacheManager
from .models import EndpointKind, EndpointRecord

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://support.content.office.net/en-us/static/O365IPAddresses.xml"


def _parse_network(raw: str, kind: EndpointKind) -> Optional[Union[ipaddress.IPv4Network, ipaddress.IPv6Network]]:
    try:
        network = ipaddress.ip_network(raw, strict=False)
    except ValueError:
        return None
    expected = 4 if kind is EndpointKind.IPV4 else 6
    if network.version != expected:
        return None
    return network


def parse_endpoint_xml(data: Union[bytes, str]) -> List[EndpointRecord]:
    """Convert the XML feed into EndpointRecords, in document order.

    Address entries without a prefix length are host routes (/32, /128).
    Malformed entries and unknown address list types are logged and skipped.
    """
    # Bytes let the parser honour the document's own encoding declaration.
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        root = fromstring(data)
    except (ParseError, UnicodeError, LookupError) as exc:
        raise RuntimeError(f"Endpoint feed is not valid XML: {exc}") from exc

    records: List[EndpointRecord] = []
    for product in root.iter("product"):
        service = (product.get("name") or "").strip()
        if not service:
            logger.warning("Skipping product without a name")
            continue

        for addrlist in product.findall("addresslist"):
            try:
                kind = EndpointKind.parse(addrlist.get("type") or "")
            except ValueError:
                logger.warning("Skipping unknown address list type %r in %s", addrlist.get("type"), service)
                continue

            for node in addrlist.findall("address"):
                value = (node.text or "").strip()
                if not value:
                    continue

                if kind is EndpointKind.URL:
                    records.append(EndpointRecord(service=service, kind=kind, pattern=value))
                    continue

                network = _parse_network(value, kind)
                if network is None:
                    logger.warning("Skipping malformed %s address %r in %s", kind.value, value, service)
                    continue
                records.append(
                    EndpointRecord(
                        service=service,
                        kind=kind,
                        address=str(network.network_address),
                        prefix_length=network.prefixlen,
                    )
                )

    logger.info("Parsed %s endpoint record(s) from feed", len(records))
    return records


def fetch_endpoint_feed(
    url: str,
    *,
    timeout: int = 60,
    verify_ssl: bool = True,
    cache_manager: Optional[CacheManager] = None,
) -> bytes:
    """Download the raw feed, going through the cache when one is given."""
    cache_key = f"feed_{url}"
    if cache_manager:
        cached = cache_manager.get(cache_key)
        if cached is not None:
            logger.info("Using cached endpoint feed for %s", url)
            return cached

    logger.info("Downloading endpoint feed from %s", url)
    resp = requests.get(url, timeout=timeout, verify=verify_ssl)
    resp.raise_for_status()
    data = resp.content

    if cache_manager:
        cache_manager.set(cache_key, data)
    return data


def load_endpoints(
    *,
    feed_url: Optional[str] = None,
    feed_file: Optional[Path] = None,
    timeout: int = 60,
    cache_manager: Optional[CacheManager] = None,
) -> List[EndpointRecord]:
    """Load records from a local feed file if given, else from the feed URL."""
    if feed_file:
        p = Path(feed_file)
        if not p.is_file():
            raise RuntimeError(f"Endpoint feed file not found: {p}")
        logger.info("Reading endpoint feed from %s", p)
        return parse_endpoint_xml(p.read_bytes())

    data = fetch_endpoint_feed(feed_url or DEFAULT_FEED_URL, timeout=timeout, cache_manager=cache_manager)
    return parse_endpoint_xml(data)
