"""
Snapshot summaries and their per-VM and collection-wide roll ups.

A SnapshotSummary records the size attributed to one snapshot and whether
it crossed the age and size thresholds. A SummarySet groups the summaries
of one VM and carries the flags for the cumulative size of the set.
SummarySets aggregates every evaluated VM and yields the overall state.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .states import State
from .thresholds import Thresholds, exceeds_age, exceeds_size
from .units import byte_size_hr


@dataclass(frozen=True)
class SnapshotSummary:
    """Summary of the most commonly used details of one VM snapshot."""

    snapshot_id: str
    name: str
    description: str
    vm_name: str
    create_time: datetime
    size: int
    id: int = 0
    age_warning_state: bool = False
    age_critical_state: bool = False
    size_warning_state: bool = False
    size_critical_state: bool = False

    @property
    def size_hr(self) -> str:
        return byte_size_hr(self.size)

    def age_days(self, now: datetime) -> float:
        """Age of the snapshot in (fractional) days."""
        return (now - self.create_time).total_seconds() / 86400

    def age(self, now: datetime) -> str:
        return f"{self.age_days(now):.2f} days"

    def is_age_exceeded(self, days: int, now: datetime) -> bool:
        return exceeds_age(self.create_time, days, now)

    def is_size_exceeded(self, size_gb: int) -> bool:
        return exceeds_size(self.size, size_gb)

    def is_warning_state(self) -> bool:
        return self.age_warning_state or self.size_warning_state

    def is_critical_state(self) -> bool:
        return self.age_critical_state or self.size_critical_state

    def is_age_warning_state(self) -> bool:
        return self.age_warning_state

    def is_age_critical_state(self) -> bool:
        return self.age_critical_state

    def is_size_warning_state(self) -> bool:
        return self.size_warning_state

    def is_size_critical_state(self) -> bool:
        return self.size_critical_state


def new_snapshot_summary(
    snapshot_id: str,
    name: str,
    description: str,
    vm_name: str,
    create_time: datetime,
    size: int,
    thresholds: Thresholds,
    now: datetime,
    id: int = 0,
) -> SnapshotSummary:
    """Evaluate thresholds and build the summary for one snapshot."""
    return SnapshotSummary(
        snapshot_id=snapshot_id,
        name=name,
        description=description,
        vm_name=vm_name,
        create_time=create_time,
        size=size,
        id=id,
        age_warning_state=exceeds_age(create_time, thresholds.age_warning_days, now),
        age_critical_state=exceeds_age(create_time, thresholds.age_critical_days, now),
        size_warning_state=exceeds_size(size, thresholds.size_warning_gb),
        size_critical_state=exceeds_size(size, thresholds.size_critical_gb),
    )


@dataclass(frozen=True)
class SummarySet:
    """Snapshot summaries belonging to one virtual machine."""

    vm_moid: str
    vm_name: str
    snapshots: Tuple[SnapshotSummary, ...]
    size_warning_state: bool = False
    size_critical_state: bool = False

    @classmethod
    def from_snapshots(
        cls,
        vm_moid: str,
        vm_name: str,
        snapshots: Iterable[SnapshotSummary],
        thresholds: Thresholds,
    ) -> "SummarySet":
        """Build a set, evaluating the cumulative size flags once."""
        snapshots = tuple(snapshots)
        set_size = sum(snap.size for snap in snapshots)
        return cls(
            vm_moid=vm_moid,
            vm_name=vm_name,
            snapshots=snapshots,
            size_warning_state=exceeds_size(set_size, thresholds.size_warning_gb),
            size_critical_state=exceeds_size(set_size, thresholds.size_critical_gb),
        )

    def __len__(self) -> int:
        return len(self.snapshots)

    @property
    def size(self) -> int:
        """Cumulative size of all snapshots in the set."""
        return sum(snap.size for snap in self.snapshots)

    @property
    def size_hr(self) -> str:
        return byte_size_hr(self.size)

    def exceeds_age(self, days: int, now: datetime) -> int:
        """Number of snapshots in the set older than ``days``."""
        return sum(1 for snap in self.snapshots if snap.is_age_exceeded(days, now))

    def exceeds_size(self, size_gb: int) -> int:
        """Number of individual snapshots in the set larger than ``size_gb``."""
        return sum(1 for snap in self.snapshots if snap.is_size_exceeded(size_gb))

    def is_warning_state(self) -> bool:
        return self.size_warning_state or any(
            snap.is_warning_state() for snap in self.snapshots
        )

    def is_critical_state(self) -> bool:
        return self.size_critical_state or any(
            snap.is_critical_state() for snap in self.snapshots
        )

    def is_age_warning_state(self) -> bool:
        return any(snap.is_age_warning_state() for snap in self.snapshots)

    def is_age_critical_state(self) -> bool:
        return any(snap.is_age_critical_state() for snap in self.snapshots)

    def is_size_warning_state(self) -> bool:
        return self.size_warning_state

    def is_size_critical_state(self) -> bool:
        return self.size_critical_state


class SummarySets(list):
    """Collection of SummarySet values, one per evaluated VM with snapshots."""

    def snapshots(self) -> int:
        """Number of snapshots across all sets."""
        return sum(len(snap_set) for snap_set in self)

    def exceeds_age(self, days: int, now: datetime) -> Tuple[int, int]:
        """Number of sets, and snapshots within them, older than ``days``."""
        sets_exceeded = 0
        snapshots_exceeded = 0
        for snap_set in self:
            count = snap_set.exceeds_age(days, now)
            if count:
                sets_exceeded += 1
                snapshots_exceeded += count
        return sets_exceeded, snapshots_exceeded

    def exceeds_size(self, size_gb: int) -> Tuple[int, int]:
        """Number of sets whose cumulative size is larger than ``size_gb``,
        and the number of snapshots in those sets."""
        sets_exceeded = 0
        snapshots_exceeded = 0
        for snap_set in self:
            if exceeds_size(snap_set.size, size_gb):
                sets_exceeded += 1
                snapshots_exceeded += len(snap_set)
        return sets_exceeded, snapshots_exceeded

    def has_not_yet_exceeded_age(self, days: int, now: datetime) -> bool:
        """Whether any snapshot in any set is still within ``days``."""
        return any(
            not snap.is_age_exceeded(days, now)
            for snap_set in self
            for snap in snap_set.snapshots
        )

    def has_not_yet_exceeded_size(self, size_gb: int) -> bool:
        """Whether any set is still within ``size_gb`` cumulatively."""
        return any(not exceeds_size(snap_set.size, size_gb) for snap_set in self)

    def is_warning_state(self) -> bool:
        return any(snap_set.is_warning_state() for snap_set in self)

    def is_critical_state(self) -> bool:
        return any(snap_set.is_critical_state() for snap_set in self)

    def is_age_warning_state(self) -> bool:
        return any(snap_set.is_age_warning_state() for snap_set in self)

    def is_age_critical_state(self) -> bool:
        return any(snap_set.is_age_critical_state() for snap_set in self)

    def is_size_warning_state(self) -> bool:
        return any(snap_set.is_size_warning_state() for snap_set in self)

    def is_size_critical_state(self) -> bool:
        return any(snap_set.is_size_critical_state() for snap_set in self)

    def verdict(self, check: Optional[str] = None) -> State:
        """Overall state, CRITICAL taking precedence over WARNING.

        ``check`` narrows the evaluation to ``"age"`` or ``"size"`` flags;
        by default every flag counts.
        """
        if check == "age":
            critical, warning = self.is_age_critical_state, self.is_age_warning_state
        elif check == "size":
            critical, warning = self.is_size_critical_state, self.is_size_warning_state
        elif check is None:
            critical, warning = self.is_critical_state, self.is_warning_state
        else:
            raise ValueError(f"unknown check type: {check!r}")

        if critical():
            return State.CRITICAL
        if warning():
            return State.WARNING
        return State.OK
