"""
Configuration loading and run option validation.

The crawler is configured in two layers:
- A JSON config file (crawler.config.json by default) holding the database
  paths and the telemetry endpoint. Any key can be overridden by an
  environment variable of the same name (.env is loaded first).
- Per-invocation RunOptions coming from the command line.

Usage:
    from runner.config import load_config, RunOptions, validate_run_options

    config = load_config("crawler.config.json")
    options = validate_run_options(RunOptions(parallel=5, max_sites=1000))
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load environment
load_dotenv()

DEFAULT_CONFIG_PATH = "crawler.config.json"
DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "db" / "schema.sql"

CONFIG_KEYS = (
    "ROOT_DIR",
    "DB_PATH",
    "DB_SQL_PATH",
    "API_ENDPOINT",
    "CLIENT_SCRIPT_PATH",
)
REQUIRED_KEYS = ("DB_PATH", "API_ENDPOINT")

BROWSERS = ("firefox", "chromium", "webkit")
ORDERS = ("asc", "random")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class CrawlerConfig:
    """Resolved crawler configuration."""

    config_path: Path
    db_path: Path
    db_sql_path: Path
    api_endpoint: str
    client_script_path: Optional[Path] = None


def load_config(filepath: Optional[str] = None) -> CrawlerConfig:
    """
    Load the crawler config file and apply environment overrides.

    Args:
        filepath: Config file path, relative to the working directory
            (default: CONFIG_PATH env var or crawler.config.json)

    Returns:
        CrawlerConfig with all paths made absolute

    Raises:
        ConfigurationError: If the file is missing, unreadable or incomplete
    """
    if filepath is None:
        filepath = os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    config_path = Path(filepath).expanduser().resolve()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {config_path} is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a JSON object")

    # Environment variables win over the file
    for key in CONFIG_KEYS:
        value = os.getenv(key)
        if value:
            raw[key] = value

    missing = [key for key in REQUIRED_KEYS if not raw.get(key)]
    if missing:
        raise ConfigurationError(
            f"Required config key(s) {', '.join(missing)} not set in {config_path} or environment"
        )

    root_dir = Path.cwd() / raw.get("ROOT_DIR", ".")

    db_sql_path = (
        (root_dir / raw["DB_SQL_PATH"]).resolve() if raw.get("DB_SQL_PATH") else DEFAULT_SCHEMA_PATH
    )
    client_script_path = (
        (root_dir / raw["CLIENT_SCRIPT_PATH"]).resolve() if raw.get("CLIENT_SCRIPT_PATH") else None
    )

    return CrawlerConfig(
        config_path=config_path,
        db_path=(root_dir / raw["DB_PATH"]).resolve(),
        db_sql_path=db_sql_path,
        api_endpoint=str(raw["API_ENDPOINT"]).rstrip("/"),
        client_script_path=client_script_path,
    )


@dataclass
class RunOptions:
    """Options for a single crawl run."""

    browser: str = "firefox"
    depth: int = 0
    max_sites: Optional[int] = None
    block: bool = False
    timeout: int = 30
    parallel: int = 1
    restart: bool = False
    order: str = "asc"
    bypass_csp: bool = False
    proxy: Optional[str] = None
    debug: bool = False
    verbose: bool = False
    config: str = field(default=DEFAULT_CONFIG_PATH)

    @property
    def timeout_ms(self) -> int:
        return self.timeout * 1000

    def validate(self) -> List[str]:
        """Return a list of human readable problems (empty when valid)."""
        errors = []

        if self.browser not in BROWSERS:
            errors.append(f"Browser must be one of {', '.join(BROWSERS)}")
        if not _is_int(self.depth) or self.depth < 0:
            errors.append("Depth must be a number greater than or equal to 0")
        if self.max_sites is not None and (not _is_int(self.max_sites) or self.max_sites < 1):
            errors.append("Max must be a number greater than 0")
        if not _is_int(self.timeout) or self.timeout < 0:
            errors.append("Timeout must be a number greater than or equal to 0")
        if not _is_int(self.parallel) or self.parallel < 1:
            errors.append("Parallel must be a number greater than 0")
        for name in ("block", "restart", "bypass_csp", "debug", "verbose"):
            if not isinstance(getattr(self, name), bool):
                errors.append(f"{name.replace('_', '-').capitalize()} must be a boolean")
        if self.order not in ORDERS:
            errors.append('Order must be "asc" or "random"')

        return errors

    def snapshot(self, config: CrawlerConfig) -> Dict[str, Any]:
        """Effective configuration stored on the run record."""
        return {
            "API_ENDPOINT": config.api_endpoint,
            "config": self.config,
            "browser": self.browser,
            "block": self.block,
            "debug": self.debug,
            "depth": self.depth,
            "max": self.max_sites,
            "order": self.order,
            "parallel": self.parallel,
            "restart": self.restart,
            "timeout": self.timeout,
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_run_options(options: RunOptions) -> RunOptions:
    """
    Validate run options.

    Args:
        options: RunOptions to check

    Returns:
        The same options when valid

    Raises:
        ConfigurationError: Listing every invalid option
    """
    errors = options.validate()
    if errors:
        raise ConfigurationError("; ".join(errors))
    return options
