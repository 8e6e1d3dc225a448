"""Snapshot size attribution and age/size threshold checks for vSphere VMs."""

from .models import FileKind, FileRecord, MachineInventory, SnapshotLayout, SnapshotNode
from .states import State
from .summary import SnapshotSummary, SummarySet, SummarySets
from .thresholds import Thresholds, exceeds_age, exceeds_size
from .walker import build_summary_sets, new_summary_set, walk_snapshot_tree

__all__ = [
    "FileKind",
    "FileRecord",
    "MachineInventory",
    "SnapshotLayout",
    "SnapshotNode",
    "SnapshotSummary",
    "State",
    "SummarySet",
    "SummarySets",
    "Thresholds",
    "build_summary_sets",
    "exceeds_age",
    "exceeds_size",
    "new_summary_set",
    "walk_snapshot_tree",
]
