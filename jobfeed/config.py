"""Load feed settings, credentials and profile files."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobfeed.errors import ConfigError
from jobfeed.log import get_logger
from jobfeed.models import Experience, Profile

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = PROJECT_ROOT / "data"

WORK_STYLES: tuple[str, ...] = ("", "remote", "onsite", "hybrid")


@dataclass(frozen=True)
class ScoringWeights:
    """Point values for each match-score term.

    Role match dominates, skill overlap is second, keyword mentions,
    location and salary break ties.
    """

    base: int = 30
    role: int = 25
    skill_overlap: int = 25
    keyword_per_skill: int = 3
    keyword_cap: int = 10
    location: int = 5
    salary: int = 5


@dataclass(frozen=True)
class FeedSettings:
    throttle_hours: float = 2.0
    refresh_timeout: float = 90.0
    rescore_timeout: float = 30.0
    request_timeout: float = 20.0
    job_ttl_days: int = 7
    feed_limit_default: int = 100
    feed_limit_max: int = 200
    background_workers: int = 4
    database_path: str = str(DATA_DIR / "feed.sqlite3")
    weights: ScoringWeights = field(default_factory=ScoringWeights)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _coerce(section: str, name: str, value: Any, default: Any) -> Any:
    expected = type(default)
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, expected) or isinstance(value, bool) != isinstance(default, bool):
        raise ConfigError(
            f"{section}.{name}: expected {expected.__name__}, got {type(value).__name__}"
        )
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
        raise ConfigError(f"{section}.{name}: must not be negative")
    return value


def _build(cls: type, section: str, raw: dict[str, Any]) -> Any:
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        log.warning("Ignoring unknown %s keys: %s", section, ", ".join(sorted(unknown)))
    kwargs = {
        name: _coerce(section, name, value, getattr(defaults, name))
        for name, value in raw.items()
        if name in known and name != "weights"
    }
    return cls(**kwargs)


def load_settings(path: Path | str | None = None) -> FeedSettings:
    """Read settings.yaml; missing file or keys fall back to defaults."""
    settings_path = Path(path) if path else SETTINGS_PATH
    data: dict[str, Any] = {}
    if settings_path.exists():
        with open(settings_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"{settings_path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{settings_path.name}: top level must be a mapping")
    else:
        log.debug("No settings file at %s — using defaults", settings_path)

    feed_raw = data.get("feed") or {}
    weights_raw = data.get("weights") or {}
    if not isinstance(feed_raw, dict) or not isinstance(weights_raw, dict):
        raise ConfigError(f"{settings_path.name}: 'feed' and 'weights' must be mappings")

    settings: FeedSettings = _build(FeedSettings, "feed", feed_raw)
    weights: ScoringWeights = _build(ScoringWeights, "weights", weights_raw)

    overrides: dict[str, Any] = {"weights": weights}
    db_override = get_env("FEED_DB_PATH")
    if db_override:
        overrides["database_path"] = db_override
    elif not Path(settings.database_path).is_absolute():
        overrides["database_path"] = str(PROJECT_ROOT / settings.database_path)

    if settings.feed_limit_default > settings.feed_limit_max:
        raise ConfigError("feed.feed_limit_default: must not exceed feed_limit_max")

    return replace(settings, **overrides)


def _salary(value: Any) -> int:
    try:
        amount = int(value or 0)
    except (TypeError, ValueError):
        raise ConfigError(f"salary: expected a whole number, got {value!r}") from None
    if amount < 0:
        raise ConfigError("salary: must not be negative")
    return amount


def profile_from_dict(user_id: str, data: dict[str, Any]) -> Profile:
    """Build a Profile from a loosely-typed mapping (YAML file or stored JSON)."""
    work_style = str(data.get("work_style") or "").strip().lower()
    if work_style not in WORK_STYLES:
        raise ConfigError(f"work_style: must be one of remote, onsite, hybrid (got {work_style!r})")

    experience: list[Experience] = []
    for item in data.get("experience") or []:
        if isinstance(item, str):
            experience.append(Experience(title=item))
        elif isinstance(item, dict):
            experience.append(Experience(title=str(item.get("title") or ""), company=str(item.get("company") or "")))

    salary = data.get("salary") or {}
    if not isinstance(salary, dict):
        raise ConfigError("salary: expected a mapping with min/max")
    return Profile(
        user_id=user_id,
        target_roles=[str(r) for r in data.get("target_roles") or []],
        skills=[str(s) for s in data.get("skills") or []],
        location=str(data.get("location") or ""),
        work_style=work_style,
        salary_min=_salary(data.get("salary_min") or salary.get("min")),
        salary_max=_salary(data.get("salary_max") or salary.get("max")),
        experience=experience,
    )


def load_profile(path: Path | str, user_id: str) -> Profile:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{Path(path).name}: profile must be a mapping")

    # Backward compat: older profiles used preferred_roles / core_roles
    if "target_roles" not in data:
        data["target_roles"] = list(data.get("core_roles") or data.get("preferred_roles") or [])

    return profile_from_dict(user_id, data)
