"""Load, validate, and hot-reload the sync engine configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk after an edit; the next cycle picks up the new values.

Usage::

    from src.leaderboard.config_loader import get_sync_config

    config = get_sync_config()
    config.schedule.interval_seconds        # 60
    config.credentials.refresh_margin_seconds  # 300
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("squadboard.leaderboard.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"

_BUCKET_RE = re.compile(r"^\d+\s+(minute|minutes|hour|hours|day|days)$")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ScheduleConfig:
    interval_seconds: float


@dataclass
class CredentialsConfig:
    refresh_margin_seconds: float


@dataclass
class RankingConfig:
    """Which ranking feed to page through, and how far."""

    type: str
    season_id: str
    max_pages: int | None  # None = unbounded


@dataclass
class HistoryConfig:
    """Query-side settings for the history endpoints."""

    aggregation_threshold_hours: float
    bucket: str


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:     Config schema version string.
        schedule:    Scheduler period.
        credentials: Credential refresh margin.
        ranking:     Ranking feed selection and page cap.
        history:     Aggregation settings for team history queries.
    """

    version: str
    schedule: ScheduleConfig
    credentials: CredentialsConfig
    ranking: RankingConfig
    history: HistoryConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any value is missing or out of range.
    """
    errors: list[str] = []

    def _positive(section: dict, key: str, default: Any, name: str) -> float:
        val = section.get(key, default)
        try:
            num = float(val)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {val!r}")
            return float(default)
        if num <= 0:
            errors.append(f"{name}.{key} must be > 0, got {num}")
        return num

    version = str(raw.get("version", "1.0"))

    # ── Schedule ──
    sched_raw = raw.get("schedule") or {}
    schedule = ScheduleConfig(
        interval_seconds=_positive(sched_raw, "interval_seconds", 60, "schedule"),
    )

    # ── Credentials ──
    cred_raw = raw.get("credentials") or {}
    margin = cred_raw.get("refresh_margin_seconds", 300)
    try:
        margin = float(margin)
        if margin < 0:
            errors.append(f"credentials.refresh_margin_seconds must be >= 0, got {margin}")
    except (TypeError, ValueError):
        errors.append(f"credentials.refresh_margin_seconds must be a number, got {margin!r}")
        margin = 300.0
    credentials = CredentialsConfig(refresh_margin_seconds=margin)

    # ── Ranking ──
    rk_raw = raw.get("ranking") or {}
    max_pages = rk_raw.get("max_pages", 500)
    if max_pages is not None:
        if isinstance(max_pages, bool) or not isinstance(max_pages, int) or max_pages < 1:
            errors.append(f"ranking.max_pages must be a positive integer or null, got {max_pages!r}")
            max_pages = 500
    ranking = RankingConfig(
        type=str(rk_raw.get("type", "a")),
        season_id=str(rk_raw.get("season_id", "a")),
        max_pages=max_pages,
    )

    # ── History ──
    hist_raw = raw.get("history") or {}
    bucket = str(hist_raw.get("bucket", "6 hours"))
    if not _BUCKET_RE.match(bucket):
        errors.append(f"history.bucket must look like '6 hours', got {bucket!r}")
    history = HistoryConfig(
        aggregation_threshold_hours=_positive(
            hist_raw, "aggregation_threshold_hours", 24, "history"
        ),
        bucket=bucket,
    )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        schedule=schedule,
        credentials=credentials,
        ranking=ranking,
        history=history,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
