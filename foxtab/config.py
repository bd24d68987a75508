"""
FoxTab - Configuration Management
Centralized configuration: paths, scanner binary resolution, API and scan defaults.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List


logger = logging.getLogger(__name__)

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DATA_DIR = PROJECT_ROOT / "data"

# Persistence files
CONFIG_FILE = DATA_DIR / "config.json"

# Environment override for the scanner binary
DALFOX_ENV_VAR = "FOXTAB_DALFOX_BIN"
DALFOX_COMMAND = "dalfox"


def dalfox_candidates() -> List[Path]:
    """Conventional install locations, checked in order."""
    home = Path.home()
    return [
        Path("/usr/local/bin/dalfox"),
        Path("/usr/bin/dalfox"),
        home / "go" / "bin" / "dalfox",
        home / ".local" / "bin" / "dalfox",
    ]


def resolve_dalfox_bin() -> str:
    """Resolve the Dalfox executable once, without touching PATH ourselves.

    The bare command name is the last resort; process creation then relies on
    the ambient executable search path.
    """
    env_path = os.environ.get(DALFOX_ENV_VAR, "").strip()
    if env_path:
        return str(Path(env_path).expanduser())

    user_path = str(load_user_config().get("dalfox_path", "") or "").strip()
    if user_path:
        return str(Path(user_path).expanduser())

    for candidate in dalfox_candidates():
        if candidate.exists():
            return str(candidate)

    return DALFOX_COMMAND


@dataclass
class APIConfig:
    """Backend API configuration."""
    host: str = "127.0.0.1"
    port: int = 8765
    # The scan UI is served from a browser extension origin
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    # Lines of scanner output kept in memory per scan
    output_buffer_lines: int = 5000


@dataclass
class ScanConfig:
    """Scan execution defaults."""
    # Seconds allowed for the `dalfox version` health check
    preflight_timeout: float = 5.0
    scan_timeout_minutes: int = 30
    # Reject Stored XSS mode without a trigger URL before building
    strict_trigger: bool = True


@dataclass
class AppConfig:
    """Overall application configuration."""
    api: APIConfig = field(default_factory=APIConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)


def ensure_dirs():
    """Create all required directories."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


# ── User Config Persistence ───────────────────────────────────────

def load_user_config() -> dict:
    """Load user config overrides (API port, binary path, etc)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Error loading config %s: %s", CONFIG_FILE, e)
        return {}
    return data if isinstance(data, dict) else {}


def save_user_config(config: dict):
    """Save user config overrides, merged over what is already stored."""
    ensure_dirs()
    existing = load_user_config()
    existing.update(config)
    with open(CONFIG_FILE, 'w') as f:
        json.dump(existing, f, indent=2)


def get_config() -> AppConfig:
    """Get the current configuration, merging defaults with persisted overrides."""
    cfg = AppConfig()

    user_cfg = load_user_config()
    if 'api_port' in user_cfg:
        cfg.api.port = int(user_cfg['api_port'])
    if 'preflight_timeout' in user_cfg:
        cfg.scan.preflight_timeout = float(user_cfg['preflight_timeout'])
    if 'scan_timeout_minutes' in user_cfg:
        cfg.scan.scan_timeout_minutes = int(user_cfg['scan_timeout_minutes'])
    if 'strict_trigger' in user_cfg:
        cfg.scan.strict_trigger = bool(user_cfg['strict_trigger'])

    return cfg


DALFOX_BIN = resolve_dalfox_bin()
