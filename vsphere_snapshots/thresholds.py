"""Age and size threshold checks for snapshots."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .units import GB


@dataclass(frozen=True)
class Thresholds:
    """WARNING and CRITICAL thresholds for snapshot age and size."""

    age_warning_days: int = 1
    age_critical_days: int = 2
    size_warning_gb: int = 20
    size_critical_gb: int = 40

    def __post_init__(self):
        for name in (
            "age_warning_days",
            "age_critical_days",
            "size_warning_gb",
            "size_critical_gb",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise ValueError(f"{name} must be at least 1, got {value}")

        if self.age_critical_days < self.age_warning_days:
            raise ValueError(
                f"age critical threshold ({self.age_critical_days} days) is lower "
                f"than age warning threshold ({self.age_warning_days} days)"
            )
        if self.size_critical_gb < self.size_warning_gb:
            raise ValueError(
                f"size critical threshold ({self.size_critical_gb} GB) is lower "
                f"than size warning threshold ({self.size_warning_gb} GB)"
            )


def exceeds_age(created: datetime, days: int, now: datetime) -> bool:
    """Whether ``created`` is older than ``days`` days as of ``now``.

    A creation time exactly on the boundary has not exceeded it.
    """
    return created < now - timedelta(days=days)


def exceeds_size(size: int, threshold_gb: int) -> bool:
    """Whether ``size`` bytes is larger than ``threshold_gb`` binary gigabytes."""
    return size > threshold_gb * GB
