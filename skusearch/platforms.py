"""
Platform capability lookups.

AdsCapabilities answers "does this platform run ads?" and PlatformRules
answers "is this platform excluded from aggregates?". Both hold their state
on the instance; hosts build one per settings snapshot.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, TypeVar

from skusearch.config import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdsCapabilities:
    """
    Case-insensitive ads-enabled lookup.

    Resolution order: explicit setting, then name heuristic against
    config.ads.default_platforms (amazon/ebay/temu by default).
    """

    def __init__(self, settings: Optional[Dict[str, bool]] = None, default_platforms: Optional[List[str]] = None):
        self._settings: Dict[str, bool] = {
            str(k).lower(): bool(v) for k, v in (settings or {}).items()
        }
        self._default_platforms = [
            p.lower() for p in (default_platforms if default_platforms is not None else config.ads.default_platforms)
        ]

    def __call__(self, platform: Optional[str]) -> bool:
        return self.is_enabled(platform)

    def is_enabled(self, platform: Optional[str]) -> bool:
        if not platform:
            return False
        key = platform.lower()
        if key in self._settings:
            return self._settings[key]
        return self._matches_default(key)

    def set_enabled(self, platform: str, enabled: bool) -> None:
        self._settings[platform.lower()] = enabled

    def _matches_default(self, key: str) -> bool:
        return any(name in key for name in self._default_platforms)

    def infer_from_history(self, platforms: Iterable[str], sales: Iterable) -> List[str]:
        """
        Fill in platforms that have no explicit setting.

        A platform is ad-enabled when any of its sales rows carries ad
        spend, or when its name matches a default ads platform. Returns
        the platforms that were newly set.
        """
        with_ads = {
            (row.platform or "").lower()
            for row in sales
            if (row.ad_spend or 0) > 0
        }
        added = []
        for platform in platforms:
            key = platform.lower()
            if key in self._settings:
                continue
            self._settings[key] = key in with_ads or self._matches_default(key)
            added.append(platform)
        if added:
            logger.debug("Inferred ads capability", extra={"platforms": added})
        return added


@dataclass(frozen=True)
class PlatformRule:
    """Pricing rule for one platform."""
    markup: float = 0.0
    commission: float = 0.0
    manager: Optional[str] = None
    is_excluded: bool = False


@dataclass
class PlatformRules:
    """Per-platform pricing rules; excluded platforms are left out of aggregates."""
    rules: Dict[str, PlatformRule] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> "PlatformRules":
        rules = {}
        for platform, raw in (data or {}).items():
            raw = raw or {}
            rules[platform] = PlatformRule(
                markup=float(raw.get("markup", 0) or 0),
                commission=float(raw.get("commission", 0) or 0),
                manager=raw.get("manager"),
                is_excluded=bool(raw.get("is_excluded", raw.get("isExcluded", False))),
            )
        return cls(rules=rules)

    def is_excluded(self, platform: Optional[str]) -> bool:
        """Exact match first, then case-insensitive."""
        if not platform:
            return False
        rule = self.rules.get(platform)
        if rule is None:
            lowered = platform.lower()
            rule = next((r for k, r in self.rules.items() if k.lower() == lowered), None)
        return bool(rule and rule.is_excluded)

    def drop_excluded(self, rows: Iterable[T]) -> List[T]:
        """Rows whose platform is not excluded (rows without a platform are kept)."""
        return [row for row in rows if not self.is_excluded(getattr(row, "platform", None))]
