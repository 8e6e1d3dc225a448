"""
Resolve which file keys belong to which point of a snapshot hierarchy.

For a snapshot node three key sets matter: every disk file currently
attached to the VM, the files captured by the snapshot itself (its data
file plus its disk chains) and the disk chains of its immediate parent.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence

from .models import DiskChain, SnapshotLayout


@dataclass(frozen=True)
class DiskChainKeys:
    """File key sets used to attribute size to one snapshot node."""

    all_disk_keys: FrozenSet[int]
    snapshot_keys: FrozenSet[int]
    parent_disk_keys: FrozenSet[int]


def flatten_chains(chains: Iterable[DiskChain]) -> FrozenSet[int]:
    """Collapse several disk chains into one set of file keys."""
    return frozenset(key for chain in chains for key in chain)


def all_disk_keys(disks: Iterable[DiskChain]) -> FrozenSet[int]:
    """Keys of every disk chain currently attached to the machine."""
    return flatten_chains(disks)


def find_layout(
    layouts: Sequence[SnapshotLayout], snapshot_id: Optional[str]
) -> Optional[SnapshotLayout]:
    """Layout entry whose snapshot reference equals ``snapshot_id``."""
    if snapshot_id is None:
        return None
    for layout in layouts:
        if layout.snapshot_id == snapshot_id:
            return layout
    return None


def resolve_disk_chains(
    vm_disk_keys: FrozenSet[int],
    layouts: Sequence[SnapshotLayout],
    snapshot_id: str,
    parent_id: Optional[str],
) -> DiskChainKeys:
    """Collect the key sets for ``snapshot_id``.

    ``vm_disk_keys`` is computed once per machine with ``all_disk_keys``.
    A node without a layout entry contributes no keys of its own. The
    parent's snapshot data file is not part of ``parent_disk_keys``.
    """
    layout = find_layout(layouts, snapshot_id)
    snapshot_keys: FrozenSet[int] = frozenset()
    if layout is not None:
        snapshot_keys = frozenset({layout.data_key}) | flatten_chains(layout.disks)

    parent_keys: FrozenSet[int] = frozenset()
    parent_layout = find_layout(layouts, parent_id)
    if parent_layout is not None:
        parent_keys = flatten_chains(parent_layout.disks)

    return DiskChainKeys(
        all_disk_keys=vm_disk_keys,
        snapshot_keys=snapshot_keys,
        parent_disk_keys=parent_keys,
    )
