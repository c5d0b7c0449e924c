"""Configuration models and helpers for rekap."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .paths import get_config_path

logger = logging.getLogger(__name__)


DEFAULT_WORK_DOMAINS = (
    "github.com",
    "gitlab.com",
    "bitbucket.org",
    "stackoverflow.com",
    "stackexchange.com",
    "docs.*",
    "developer.*",
    "api.*",
    "atlassian.net",
    "linear.app",
    "asana.com",
    "notion.so",
    "aws.amazon.com",
    "console.cloud.google.com",
    "portal.azure.com",
)

DEFAULT_DISTRACTION_DOMAINS = (
    "twitter.com",
    "x.com",
    "reddit.com",
    "facebook.com",
    "instagram.com",
    "youtube.com",
    "tiktok.com",
    "twitch.tv",
)


@dataclass(slots=True)
class TrackingSettings:
    """Applications hidden from app totals and switching statistics."""

    exclude_apps: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DomainSettings:
    """Pattern lists used to categorize browser domains."""

    work: list[str] = field(default_factory=lambda: list(DEFAULT_WORK_DOMAINS))
    distraction: list[str] = field(
        default_factory=lambda: list(DEFAULT_DISTRACTION_DOMAINS)
    )
    neutral: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FragmentationThresholds:
    """Score cut points: 0..focused_max, ..moderate_max, fragmented_min..100."""

    focused_max: int = 30
    moderate_max: int = 60
    fragmented_min: int = 61

    def validated(self) -> "FragmentationThresholds":
        """Return thresholds that satisfy focused_max <= moderate_max < fragmented_min.

        Non-positive values fall back to their own default first; if the
        ordering still does not hold, all three are reset together.
        """
        defaults = FragmentationThresholds()
        candidate = FragmentationThresholds(
            focused_max=self.focused_max if self.focused_max > 0 else defaults.focused_max,
            moderate_max=self.moderate_max if self.moderate_max > 0 else defaults.moderate_max,
            fragmented_min=(
                self.fragmented_min if self.fragmented_min > 0 else defaults.fragmented_min
            ),
        )
        if (
            candidate.focused_max <= candidate.moderate_max
            and candidate.moderate_max < candidate.fragmented_min
        ):
            return candidate
        logger.warning(
            "Invalid fragmentation thresholds %s; using defaults.", asdict(self)
        )
        return defaults


@dataclass(frozen=True, slots=True)
class BurnoutSettings:
    """Thresholds for the wellness heuristics."""

    long_day_hours: int = 10
    switches_per_hour: int = 50
    max_tabs: int = 100
    late_night_end_hour: int = 6
    no_break_hours: int = 4
    no_break_gap: timedelta = timedelta(minutes=15)


@dataclass(slots=True)
class CollectionSettings:
    """Runtime configuration for a collection pass."""

    deadline: timedelta = timedelta(seconds=5)

    @classmethod
    def from_seconds(cls, seconds: float) -> "CollectionSettings":
        return cls(deadline=timedelta(seconds=seconds))


@dataclass(slots=True)
class RekapConfig:
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    domains: DomainSettings = field(default_factory=DomainSettings)
    fragmentation: FragmentationThresholds = field(default_factory=FragmentationThresholds)
    burnout: BurnoutSettings = field(default_factory=BurnoutSettings)
    collection: CollectionSettings = field(default_factory=CollectionSettings)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "RekapConfig":
        """Build a config from parsed YAML, keeping defaults for missing keys."""
        config = cls()
        if not data:
            return config

        tracking = data.get("tracking") or {}
        if "exclude_apps" in tracking:
            config.tracking.exclude_apps = _string_list(tracking["exclude_apps"])

        domains = data.get("domains") or {}
        for name in ("work", "distraction", "neutral"):
            if name in domains:
                setattr(config.domains, name, _string_list(domains[name]))

        fragmentation = data.get("fragmentation") or {}
        config.fragmentation = replace(
            config.fragmentation,
            **_int_fields(FragmentationThresholds, fragmentation),
        ).validated()

        burnout = dict(data.get("burnout") or {})
        gap_minutes = burnout.pop("no_break_gap_minutes", None)
        config.burnout = replace(config.burnout, **_int_fields(BurnoutSettings, burnout))
        if gap_minutes is not None:
            config.burnout = replace(
                config.burnout, no_break_gap=timedelta(minutes=float(gap_minutes))
            )

        collection = data.get("collection") or {}
        if "deadline_seconds" in collection:
            config.collection = CollectionSettings.from_seconds(
                float(collection["deadline_seconds"])
            )
        return config

    def to_mapping(self) -> dict[str, Any]:
        burnout = {
            name: getattr(self.burnout, name)
            for name in (
                "long_day_hours",
                "switches_per_hour",
                "max_tabs",
                "late_night_end_hour",
                "no_break_hours",
            )
        }
        burnout["no_break_gap_minutes"] = self.burnout.no_break_gap.total_seconds() / 60.0
        return {
            "tracking": {"exclude_apps": list(self.tracking.exclude_apps)},
            "domains": {
                "work": list(self.domains.work),
                "distraction": list(self.domains.distraction),
                "neutral": list(self.domains.neutral),
            },
            "fragmentation": asdict(self.fragmentation),
            "burnout": burnout,
            "collection": {
                "deadline_seconds": self.collection.deadline.total_seconds()
            },
        }


def load_config(path: Optional[Path] = None) -> RekapConfig:
    """Read the YAML config file, falling back to defaults when absent or broken."""
    config_path = Path(path) if path else get_config_path()
    if not config_path.exists():
        logger.debug("No config at %s; using defaults.", config_path)
        return RekapConfig()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        logger.exception("Failed to read config %s; using defaults.", config_path)
        return RekapConfig()
    if data is not None and not isinstance(data, Mapping):
        logger.warning("Config %s is not a mapping; using defaults.", config_path)
        return RekapConfig()
    return RekapConfig.from_mapping(data)


def save_config(config: RekapConfig, path: Optional[Path] = None) -> Path:
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(config.to_mapping(), sort_keys=False), encoding="utf-8"
    )
    return config_path


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _int_fields(cls: type, values: Mapping[str, Any]) -> dict[str, int]:
    known = {f.name for f in fields(cls) if f.type in ("int", int)}
    result: dict[str, int] = {}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown %s option %r.", cls.__name__, key)
            continue
        try:
            result[key] = int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer %s.%s=%r.", cls.__name__, key, value)
    return result
