import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import EndpointKind
from .session import Credentials
from .synchronizer import DEFAULT_COLOR

logger = logging.getLogger(__name__)

PUBLISH_MODES = {"auto", "never", "prompt"}

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise RuntimeError(f"Invalid boolean value for {name}={raw!r} (expected true/false).")


def _yaml_bool(section: Dict[str, Any], key: str, where: str, default: bool) -> bool:
    raw = section.get(key, default)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in _TRUE | _FALSE:
        return raw.strip().lower() in _TRUE
    raise RuntimeError(f"{where}.{key} must be boolean")


def _read_secret_file(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    p = Path(path)
    if not p.is_file():
        logger.warning("Secret file %s does not exist", p)
        return None
    return p.read_text(encoding="utf-8").strip()


def _secret(section: Dict[str, Any], key: str) -> Optional[str]:
    """Read `key` inline or from the file named by `key_file`."""
    value = section.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    file_value = section.get(f"{key}_file")
    if isinstance(file_value, str) and file_value.strip():
        return _read_secret_file(file_value.strip())
    return None


def _optional_str(value: object, where: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise RuntimeError(f"{where} must be a string or null")
    return value.strip() or None


@dataclass
class ManagementServer:
    host: str  # e.g. "mgmt.example.com" or "10.0.0.10"
    port: int = 443
    verify_ssl: bool = True
    ca_bundle: Optional[str] = None
    timeout: int = 30
    domain: Optional[str] = None


@dataclass
class Settings:
    management: ManagementServer
    credentials: Credentials
    kind: EndpointKind
    prefix: str
    category: Optional[str]
    sync_data_dir: Path
    cache_dir: Path
    use_cached_data: bool
    feed_url: Optional[str] = None
    feed_file: Optional[Path] = None
    feed_timeout: int = 60
    color: Optional[str] = DEFAULT_COLOR
    description: Optional[str] = None
    service: Optional[str] = None
    blacklist: Optional[str] = None
    publish_mode: str = "auto"
    dry_run: bool = False
    log_level: str = "INFO"
    log_dir: Optional[Path] = None


def _validate(settings: Settings) -> Settings:
    if settings.publish_mode not in PUBLISH_MODES:
        raise RuntimeError(
            f"publish mode must be one of {sorted(PUBLISH_MODES)}, got {settings.publish_mode!r}"
        )
    if settings.kind is EndpointKind.URL and not settings.category:
        raise RuntimeError("sync.category is required when synchronizing URL endpoints")
    if not settings.prefix:
        raise RuntimeError("sync.prefix must not be empty")

    settings.sync_data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    return settings


def _parse_kind(raw: object) -> EndpointKind:
    try:
        return EndpointKind.parse(str(raw))
    except ValueError as exc:
        raise RuntimeError(str(exc)) from exc


def _load_settings_from_yaml(path: str) -> Settings:
    """Load settings from a single YAML config file."""
    p = Path(path)
    if not p.is_file():
        raise RuntimeError(f"APP_CONFIG_FILE not found: {path}")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"Failed to read YAML config: {path}") from exc

    if not isinstance(raw, dict):
        raise RuntimeError("YAML config root must be a mapping/object")

    sections: Dict[str, Dict[str, Any]] = {}
    for name in ("management", "feed", "sync", "runtime"):
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise RuntimeError(f"{name} must be a mapping/object")
        sections[name] = section

    # Management server
    mgmt = sections["management"]
    host = mgmt.get("host")
    if not isinstance(host, str) or not host.strip():
        raise RuntimeError("management.host is required")

    try:
        port = int(mgmt.get("port", 443))
        timeout = int(mgmt.get("timeout", 30))
    except (TypeError, ValueError) as exc:
        raise RuntimeError("management.port and management.timeout must be integers") from exc

    management = ManagementServer(
        host=host.strip(),
        port=port,
        verify_ssl=_yaml_bool(mgmt, "verify_ssl", "management", True),
        ca_bundle=_optional_str(mgmt.get("ca_bundle"), "management.ca_bundle"),
        timeout=timeout,
        domain=_optional_str(mgmt.get("domain"), "management.domain"),
    )

    username = _optional_str(mgmt.get("username"), "management.username")
    password = _secret(mgmt, "password")
    api_key = _secret(mgmt, "api_key")
    if not api_key and not (username and password):
        raise RuntimeError(
            "management.api_key (or api_key_file) or management.username + password (or password_file) is required"
        )
    credentials = Credentials(username=username, password=password, api_key=api_key)

    # Endpoint feed
    feed = sections["feed"]
    feed_file = _optional_str(feed.get("file"), "feed.file")
    try:
        feed_timeout = int(feed.get("timeout", 60))
    except (TypeError, ValueError) as exc:
        raise RuntimeError("feed.timeout must be an integer (seconds)") from exc

    # Sync options
    sync = sections["sync"]
    runtime = sections["runtime"]
    log_dir = _optional_str(runtime.get("log_dir"), "runtime.log_dir")

    return _validate(
        Settings(
            management=management,
            credentials=credentials,
            kind=_parse_kind(sync.get("kind", "IPv4")),
            prefix=str(sync.get("prefix", "O365")).strip(),
            category=_optional_str(sync.get("category"), "sync.category"),
            color=_optional_str(sync.get("color", DEFAULT_COLOR), "sync.color"),
            description=_optional_str(sync.get("description"), "sync.description"),
            service=_optional_str(sync.get("service"), "sync.service"),
            blacklist=_optional_str(sync.get("blacklist"), "sync.blacklist"),
            publish_mode=str(sync.get("publish", "auto")).strip().lower(),
            dry_run=_yaml_bool(sync, "dry_run", "sync", False),
            feed_url=_optional_str(feed.get("url"), "feed.url"),
            feed_file=Path(feed_file) if feed_file else None,
            feed_timeout=feed_timeout,
            log_level=str(runtime.get("log_level", "INFO")),
            log_dir=Path(log_dir) if log_dir else None,
            sync_data_dir=Path(str(runtime.get("sync_data_dir", "/app/data"))),
            cache_dir=Path(str(runtime.get("cache_dir", "/app/data/cache"))),
            use_cached_data=_yaml_bool(runtime, "use_cached_data", "runtime", False),
        )
    )


def load_settings() -> Settings:
    """Load settings from YAML (APP_CONFIG_FILE) or from environment variables."""

    app_config_file = os.getenv("APP_CONFIG_FILE")
    if app_config_file:
        return _load_settings_from_yaml(app_config_file)

    host = os.getenv("CP_HOST")
    if not host:
        raise RuntimeError("CP_HOST not set. Set APP_CONFIG_FILE or the CP_* environment variables.")

    try:
        port = int(os.getenv("CP_PORT", "443"))
        timeout = int(os.getenv("CP_TIMEOUT", "30"))
        feed_timeout = int(os.getenv("O365_FEED_TIMEOUT", "60"))
    except ValueError as exc:
        raise RuntimeError("CP_PORT, CP_TIMEOUT and O365_FEED_TIMEOUT must be integers.") from exc

    management = ManagementServer(
        host=host.strip(),
        port=port,
        verify_ssl=_env_bool("CP_VERIFY_SSL", default=True),
        ca_bundle=os.getenv("CP_CA_BUNDLE") or None,
        timeout=timeout,
        domain=os.getenv("CP_DOMAIN") or None,
    )

    # Prioritize direct env vars over file-based secrets
    api_key = os.getenv("CP_API_KEY") or _read_secret_file(os.getenv("CP_API_KEY_FILE"))
    username = os.getenv("CP_USERNAME")
    password = os.getenv("CP_PASSWORD") or _read_secret_file(os.getenv("CP_PASSWORD_FILE"))
    if not api_key and not (username and password):
        raise RuntimeError(
            "Management credentials not configured. Set CP_API_KEY (or CP_API_KEY_FILE) "
            "or CP_USERNAME + CP_PASSWORD (or CP_PASSWORD_FILE)."
        )

    feed_file = os.getenv("O365_FEED_FILE")
    log_dir = os.getenv("LOG_DIR")

    return _validate(
        Settings(
            management=management,
            credentials=Credentials(username=username, password=password, api_key=api_key),
            kind=_parse_kind(os.getenv("SYNC_KIND", "IPv4")),
            prefix=os.getenv("SYNC_PREFIX", "O365").strip(),
            category=os.getenv("SYNC_CATEGORY") or None,
            color=os.getenv("SYNC_COLOR", DEFAULT_COLOR) or None,
            description=os.getenv("SYNC_DESCRIPTION") or None,
            service=os.getenv("SYNC_SERVICE") or None,
            blacklist=os.getenv("SYNC_BLACKLIST") or None,
            publish_mode=os.getenv("SYNC_PUBLISH", "auto").strip().lower(),
            dry_run=_env_bool("DRY_RUN", default=False),
            feed_url=os.getenv("O365_FEED_URL") or None,
            feed_file=Path(feed_file) if feed_file else None,
            feed_timeout=feed_timeout,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=Path(log_dir) if log_dir else None,
            sync_data_dir=Path(os.getenv("SYNC_DATA_DIR", "/app/data")),
            cache_dir=Path(os.getenv("CACHE_DIR", "/app/data/cache")),
            use_cached_data=_env_bool("USE_CACHED_DATA", default=False),
        )
    )
