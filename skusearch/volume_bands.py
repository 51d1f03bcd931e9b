"""
Volume band classifier.

Tiers group quantities into Top / Middle / Bottom percentile bands for
display badges. When even the largest total is below the absolute floor,
banding is switched off and everything reads as low volume.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from skusearch.config import VolumeBandConfig, config


class VolumeBand(str, Enum):
    TOP = "Top"
    MIDDLE = "Middle"
    BOTTOM = "Bottom"
    LOW_VOLUME = "LowVolume"


@dataclass(frozen=True)
class VolumeBanding:
    """Cut-off values of one classification run."""
    is_low_volume: bool
    top_value: Optional[float] = None
    bottom_value: Optional[float] = None
    top_percentile: float = 20.0
    bottom_percentile: float = 20.0

    def band_for(self, total: float) -> VolumeBand:
        if self.is_low_volume:
            return VolumeBand.LOW_VOLUME
        if total >= self.top_value:
            return VolumeBand.TOP
        if total <= self.bottom_value:
            return VolumeBand.BOTTOM
        return VolumeBand.MIDDLE

    def badge_for(self, total: float) -> str:
        return badge_label(self.band_for(total), self.top_percentile, self.bottom_percentile)


def badge_label(band: VolumeBand, top_percentile: float = 20.0, bottom_percentile: float = 20.0) -> str:
    """Short badge text, e.g. "Top 20%", "Mid 60%", "Bot 20%", "Low Vol"."""
    if band is VolumeBand.LOW_VOLUME:
        return "Low Vol"
    if band is VolumeBand.TOP:
        return f"Top {top_percentile:g}%"
    if band is VolumeBand.BOTTOM:
        return f"Bot {bottom_percentile:g}%"
    return f"Mid {100 - top_percentile - bottom_percentile:g}%"


def classify_volume_bands(
    totals: Sequence[float],
    settings: Optional[VolumeBandConfig] = None,
) -> Optional[VolumeBanding]:
    """
    Compute band cut-offs for a set of group totals.

    Returns:
        None for an empty set, otherwise the banding
    """
    settings = settings or config.volume
    values: List[float] = sorted(totals)
    if not values:
        return None

    if values[-1] < settings.min_absolute_floor:
        return VolumeBanding(
            is_low_volume=True,
            top_percentile=settings.top_percentile,
            bottom_percentile=settings.bottom_percentile,
        )

    n = len(values)
    bottom_idx = min(math.floor(n * settings.bottom_percentile / 100), n - 1)
    top_idx = min(math.floor(n * (1 - settings.top_percentile / 100)), n - 1)
    return VolumeBanding(
        is_low_volume=False,
        top_value=values[top_idx],
        bottom_value=values[bottom_idx],
        top_percentile=settings.top_percentile,
        bottom_percentile=settings.bottom_percentile,
    )
