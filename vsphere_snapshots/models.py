"""
Inventory data handed to the snapshot evaluation engine.

These are plain, already-resident copies of the vSphere properties the
engine needs (``layoutEx`` and the ``snapshot`` tree of a VirtualMachine).
``inventory.py`` builds them from pyVmomi managed objects; tests build them
directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class FileKind(Enum):
    """Kind of a file listed in a virtual machine's file layout."""

    DISK_DESCRIPTOR = "diskDescriptor"
    DISK_EXTENT = "diskExtent"
    SNAPSHOT_DATA = "snapshotData"
    OTHER = "other"

    @classmethod
    def from_vsphere(cls, type_name: Optional[str]) -> "FileKind":
        """Map a ``VirtualMachineFileLayoutExFileType`` value to a kind."""
        for kind in cls:
            if kind.value == type_name:
                return kind
        return cls.OTHER

    @property
    def is_disk(self) -> bool:
        return self in (FileKind.DISK_DESCRIPTOR, FileKind.DISK_EXTENT)


@dataclass(frozen=True)
class FileRecord:
    """One entry of ``vm.layoutEx.file``."""

    key: int
    name: str
    size: int
    kind: FileKind = FileKind.OTHER


# Ordered backing-file keys for one disk, descriptor and extents of every link.
DiskChain = Tuple[int, ...]


@dataclass(frozen=True)
class SnapshotLayout:
    """One entry of ``vm.layoutEx.snapshot``.

    ``snapshot_id`` is the MOID of the snapshot this layout describes,
    ``data_key`` the file key of its snapshot data (``.vmsn``) file.
    """

    snapshot_id: str
    data_key: int
    disks: Tuple[DiskChain, ...] = ()


@dataclass
class SnapshotNode:
    """One node of ``vm.snapshot.rootSnapshotList``."""

    snapshot_id: str
    name: str
    create_time: datetime
    description: str = ""
    id: int = 0
    children: List["SnapshotNode"] = field(default_factory=list)


@dataclass
class MachineInventory:
    """Everything the engine needs to know about one virtual machine."""

    name: str
    moid: str
    files: List[FileRecord] = field(default_factory=list)
    disks: List[DiskChain] = field(default_factory=list)
    snapshot_layouts: List[SnapshotLayout] = field(default_factory=list)
    root_snapshots: List[SnapshotNode] = field(default_factory=list)
    current_snapshot_id: Optional[str] = None
    resource_pool: Optional[str] = None
    power_state: str = "unknown"

    @property
    def has_snapshots(self) -> bool:
        return bool(self.root_snapshots)
