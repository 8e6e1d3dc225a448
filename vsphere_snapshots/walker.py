"""
Depth-first walk of a VM's snapshot forest.

Each node is visited before its children, siblings in the order the
inventory lists them. Per node the disk chains are resolved, size is
attributed and thresholds are evaluated, yielding one SnapshotSummary.
"""

import logging
import time
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Tuple

from .attribution import attribute_size
from .disk_chains import all_disk_keys, resolve_disk_chains
from .file_layout import build_file_layout_index
from .models import MachineInventory, SnapshotNode
from .summary import SnapshotSummary, SummarySet, SummarySets, new_snapshot_summary
from .thresholds import Thresholds
from .units import byte_size_hr


def _debug(logger: Optional[logging.Logger], msg: str, *args) -> None:
    if logger is not None:
        logger.debug(msg, *args)


def iter_snapshot_nodes(
    roots: Iterable[SnapshotNode],
) -> Iterator[Tuple[SnapshotNode, Optional[SnapshotNode]]]:
    """Yield ``(node, parent)`` pairs in depth-first pre-order."""

    def _visit(nodes, parent):
        for node in nodes:
            yield node, parent
            yield from _visit(node.children, node)

    yield from _visit(roots, None)


def walk_snapshot_tree(
    vm: MachineInventory,
    thresholds: Thresholds,
    now: datetime,
    logger: Optional[logging.Logger] = None,
) -> List[SnapshotSummary]:
    """Summaries for every snapshot of ``vm``, in depth-first pre-order."""
    index = build_file_layout_index(vm.files)
    vm_disk_keys = all_disk_keys(vm.disks)

    _debug(logger, "Number of snapshot trees: %d", len(vm.root_snapshots))
    _debug(logger, "Active snapshot MOID: %s", vm.current_snapshot_id)
    _debug(logger, "Attached disk file keys (%d): %s", len(vm_disk_keys), sorted(vm_disk_keys))
    for record in index.disk_files():
        _debug(
            logger,
            "* Disk file [Name: %s, Size: %d (%s), Key: %d]",
            record.name,
            record.size,
            byte_size_hr(record.size),
            record.key,
        )

    summaries: List[SnapshotSummary] = []
    for node, parent in iter_snapshot_nodes(vm.root_snapshots):
        parent_id = parent.snapshot_id if parent is not None else None
        _debug(
            logger,
            "Processing snapshot: [ID: %s, Name: %s, HasParent: %s]",
            node.snapshot_id,
            node.name,
            parent is not None,
        )

        keys = resolve_disk_chains(
            vm_disk_keys, vm.snapshot_layouts, node.snapshot_id, parent_id
        )
        _debug(logger, "Snapshot file keys: %s", sorted(keys.snapshot_keys))
        _debug(logger, "Parent disk file keys: %s", sorted(keys.parent_disk_keys))

        is_active = node.snapshot_id == vm.current_snapshot_id
        size = attribute_size(
            keys, index, has_parent=parent is not None, is_active=is_active
        )
        _debug(
            logger,
            "Size [bytes: %d, HR: %s] calculated for %s snapshot (active: %s)",
            size,
            byte_size_hr(size),
            node.name,
            is_active,
        )

        summaries.append(
            new_snapshot_summary(
                snapshot_id=node.snapshot_id,
                name=node.name,
                description=node.description,
                vm_name=vm.name,
                create_time=node.create_time,
                size=size,
                thresholds=thresholds,
                now=now,
                id=node.id,
            )
        )

    return summaries


def new_summary_set(
    vm: MachineInventory,
    thresholds: Thresholds,
    now: datetime,
    logger: Optional[logging.Logger] = None,
) -> SummarySet:
    """Walk the snapshot forest of ``vm`` and roll it up into a SummarySet."""
    started = time.perf_counter()
    snapshots = walk_snapshot_tree(vm, thresholds, now, logger)
    summary_set = SummarySet.from_snapshots(vm.moid, vm.name, snapshots, thresholds)

    _debug(logger, "Cumulative snapshot size for VM %s: %d", vm.name, summary_set.size)
    _debug(
        logger,
        "It took %.3fs to build the snapshot summary set for %s (%d snapshot summaries)",
        time.perf_counter() - started,
        vm.name,
        len(snapshots),
    )
    return summary_set


def build_summary_sets(
    vms: Iterable[MachineInventory],
    thresholds: Thresholds,
    now: datetime,
    logger: Optional[logging.Logger] = None,
) -> SummarySets:
    """One SummarySet per VM that has snapshots, in input order."""
    snapshot_sets = SummarySets()
    for vm in vms:
        if not vm.has_snapshots:
            continue
        _debug(logger, "Evaluating snapshots for VM %s", vm.name)
        snapshot_sets.append(new_summary_set(vm, thresholds, now, logger))
    return snapshot_sets
