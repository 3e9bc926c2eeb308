# config.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional
import configparser # For INI file handling
import logging
import math
import os
import re
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

# --- Default File Locations ---
CONFIG_PATH_ENV = "DOC2PAPERLESS_CONFIG"
DEFAULT_CONFIG_INI_PATH = Path("doc2paperless.ini")
INI_SECTION = "doc2paperless"

# --- Defaults for optional settings ---
DEFAULT_STABILITY_CHECK_INTERVAL = 2.0  # seconds
DEFAULT_STABILITY_CHECK_COUNT = 5
DEFAULT_RETRY_DELAY = 5.0  # seconds
DEFAULT_UPLOAD_TIMEOUT = 60.0  # seconds
DEFAULT_METRICS_PORT = 2112

# Environment variable -> INI key. Environment always wins over the INI file.
ENV_KEYS: Dict[str, str] = {
    "PAPERLESS_BASE_URL": "paperless_base_url",
    "PAPERLESS_AUTH_TOKEN": "paperless_auth_token",
    "CONSUME_FOLDER": "consume_folder",
    "FILE_CONSUME_WHITELIST": "file_consume_whitelist",
    "FILE_STABILITY_CHECK_INTERVAL_SECONDS": "file_stability_check_interval_seconds",
    "FILE_STABILITY_CHECK_COUNT": "file_stability_check_count",
    "HTTP_UPLOAD_RETRY_DELAY_SECONDS": "http_upload_retry_delay_seconds",
    "HTTP_UPLOAD_TIMEOUT_SECONDS": "http_upload_timeout_seconds",
    "METRICS_PORT": "metrics_port",
    "VERBOSE": "verbose",
    "LOG_FILE": "log_file",
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
_TRUE_VALUES = {"1", "t", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "n", "off"}


class ConfigError(ValueError):
    """Raised when a required setting is missing or unusable."""


@dataclass
class Config:
    base_url: str
    auth_token: str
    watch_dir: Path
    allow_list: List[str] = field(default_factory=list)  # empty means every file passes
    stability_check_interval: float = DEFAULT_STABILITY_CHECK_INTERVAL  # in seconds
    stability_check_count: int = DEFAULT_STABILITY_CHECK_COUNT
    retry_delay: float = DEFAULT_RETRY_DELAY  # in seconds
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT  # in seconds
    metrics_port: int = DEFAULT_METRICS_PORT
    verbose: bool = False
    log_file: Optional[Path] = None

    @property
    def upload_url(self) -> str:
        return self.base_url.rstrip("/") + "/api/documents/post_document/"

    def describe(self) -> Dict[str, str]:
        """Settings as printable strings, with the token masked."""
        masked = self.auth_token[:4] + "..." if len(self.auth_token) > 4 else "***"
        return {
            "Paperless Base URL": self.base_url,
            "Auth Token": masked,
            "Consume Folder": str(self.watch_dir),
            "Allow-list": ", ".join(self.allow_list) or "(all files)",
            "Stability Check Interval": f"{self.stability_check_interval}s",
            "Stability Check Count": str(self.stability_check_count),
            "Retry Delay": f"{self.retry_delay}s",
            "Upload Timeout": f"{self.upload_timeout}s",
            "Metrics Port": str(self.metrics_port),
            "Verbose": str(self.verbose),
        }


def parse_duration(value: str) -> float:
    """
    Parses a duration into seconds.

    Accepts Go-style strings such as "2s", "500ms" or "1m30s", and bare numbers
    which are taken as seconds. Raises ValueError for anything else.
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def parse_bool(value: str) -> bool:
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def parse_allow_list(value: Optional[str]) -> List[str]:
    """Splits a comma-separated pattern list like "*.pdf,*.txt" into lowercase patterns."""
    if not value:
        return []
    return [pattern.strip().lower() for pattern in value.split(",") if pattern.strip()]


def load_ini_values(ini_path: Path) -> Dict[str, str]:
    """
    Reads the [doc2paperless] section of an INI file.
    A missing file is not an error; it simply contributes no values.
    """
    parser = configparser.ConfigParser()
    if not ini_path.exists():
        logger.debug(f"Configuration file {ini_path} not found.")
        return {}

    try:
        parser.read(ini_path, encoding="utf-8")
    except configparser.Error as e:
        raise ConfigError(f"Could not parse configuration file {ini_path}: {e}") from e

    if not parser.has_section(INI_SECTION):
        logger.warning(f"Configuration file {ini_path} has no [{INI_SECTION}] section. Ignoring it.")
        return {}
    return {key: val for key, val in parser.items(INI_SECTION) if val.strip()}


def save_config_to_ini(values: Mapping[str, str], ini_path: Path):
    """Writes INI keys (see ENV_KEYS) to ini_path, creating its directory if needed."""
    parser = configparser.ConfigParser()
    known_keys = set(ENV_KEYS.values())
    parser[INI_SECTION] = {key: str(val) for key, val in values.items() if key in known_keys and val != ""}

    ini_path.parent.mkdir(parents=True, exist_ok=True)
    with ini_path.open("w", encoding="utf-8") as configfile:
        parser.write(configfile)
    logger.info(f"Configuration saved to {ini_path}")


def _duration_setting(raw: Dict[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None:
        return default
    try:
        seconds = parse_duration(value)
    except ValueError:
        logger.warning(f"Unparsable value {value!r} for {key}. Using default of {default}s.")
        return default
    if seconds < 0:
        logger.warning(f"Negative value {value!r} for {key}. Using default of {default}s.")
        return default
    return seconds


def _positive_int_setting(raw: Dict[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    try:
        number = int(value.strip())
    except ValueError:
        logger.warning(f"Unparsable value {value!r} for {key}. Using default of {default}.")
        return default
    if number < 1:
        logger.warning(f"Value {number} for {key} must be at least 1. Using default of {default}.")
        return default
    return number


def resolve_ini_path(environ: Mapping[str, str]) -> Path:
    configured = environ.get(CONFIG_PATH_ENV)
    if configured:
        return Path(os.path.expanduser(configured))
    return DEFAULT_CONFIG_INI_PATH


def load_config(environ: Optional[Mapping[str, str]] = None, ini_path: Optional[Path] = None) -> Config:
    """
    Builds the process configuration.

    Values come from the environment first, then from the INI file, then from
    defaults. Raises ConfigError when the base URL, token or consume folder are
    missing, or when the base URL is not an http(s) URL.
    """
    if environ is None:
        environ = os.environ
    if ini_path is None:
        ini_path = resolve_ini_path(environ)

    raw: Dict[str, str] = {}
    raw.update(load_ini_values(ini_path))
    for env_name, key in ENV_KEYS.items():
        value = environ.get(env_name)
        if value is not None and value.strip() != "":
            raw[key] = value

    base_url = raw.get("paperless_base_url", "").strip()
    watch_dir = raw.get("consume_folder", "").strip()
    auth_token = raw.get("paperless_auth_token", "").strip()

    if not base_url or not watch_dir:
        raise ConfigError("Missing required environment variables: PAPERLESS_BASE_URL, CONSUME_FOLDER")
    if not auth_token:
        raise ConfigError(
            "Environment Variable PAPERLESS_AUTH_TOKEN not set. "
            "Note: Currently only Auth token are supported, not Base64(user:pass)"
        )
    url_parts = urlsplit(base_url)
    if url_parts.scheme.lower() not in ("http", "https") or not url_parts.netloc:
        raise ConfigError(f"PAPERLESS_BASE_URL must start with http:// or https://, got {base_url!r}")

    verbose = False
    if "verbose" in raw:
        try:
            verbose = parse_bool(raw["verbose"])
        except ValueError:
            logger.warning(f"Unparsable value {raw['verbose']!r} for verbose. Verbose logging stays off.")

    metrics_port = DEFAULT_METRICS_PORT
    if "metrics_port" in raw:
        try:
            metrics_port = int(raw["metrics_port"].strip())
        except ValueError:
            logger.warning(f"Unparsable value {raw['metrics_port']!r} for metrics_port. Using default of {DEFAULT_METRICS_PORT}.")

    log_file = raw.get("log_file")

    return Config(
        base_url=base_url,
        auth_token=auth_token,
        watch_dir=Path(os.path.expanduser(watch_dir)).resolve(),
        allow_list=parse_allow_list(raw.get("file_consume_whitelist")),
        stability_check_interval=_duration_setting(
            raw, "file_stability_check_interval_seconds", DEFAULT_STABILITY_CHECK_INTERVAL
        ),
        stability_check_count=_positive_int_setting(
            raw, "file_stability_check_count", DEFAULT_STABILITY_CHECK_COUNT
        ),
        retry_delay=_duration_setting(raw, "http_upload_retry_delay_seconds", DEFAULT_RETRY_DELAY),
        upload_timeout=_duration_setting(raw, "http_upload_timeout_seconds", DEFAULT_UPLOAD_TIMEOUT),
        metrics_port=metrics_port,
        verbose=verbose,
        log_file=Path(os.path.expanduser(log_file)) if log_file else None,
    )
