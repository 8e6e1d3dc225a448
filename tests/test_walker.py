import logging
from datetime import timedelta

from vsphere_snapshots.models import (
    FileKind,
    FileRecord,
    MachineInventory,
    SnapshotLayout,
    SnapshotNode,
)
from vsphere_snapshots.states import State
from vsphere_snapshots.units import GB, KB, MB
from vsphere_snapshots.walker import (
    build_summary_sets,
    iter_snapshot_nodes,
    new_summary_set,
    walk_snapshot_tree,
)


def _node(now, moid, children=()):
    return SnapshotNode(
        snapshot_id=moid, name=moid, create_time=now, children=list(children)
    )


def test_preorder_traversal_keeps_sibling_order(now):
    roots = [
        _node(now, "a", [_node(now, "a1", [_node(now, "a1a")]), _node(now, "a2")]),
        _node(now, "b"),
    ]

    visited = [(node.snapshot_id, parent.snapshot_id if parent else None)
               for node, parent in iter_snapshot_nodes(roots)]

    assert visited == [
        ("a", None),
        ("a1", "a"),
        ("a1a", "a1"),
        ("a2", "a"),
        ("b", None),
    ]


def test_walk_visits_every_node_once_without_layouts(now, thresholds):
    vm = MachineInventory(
        name="vm01",
        moid="vm-1",
        root_snapshots=[_node(now, "a", [_node(now, "a1")]), _node(now, "b")],
    )

    summaries = walk_snapshot_tree(vm, thresholds, now)

    assert [snap.snapshot_id for snap in summaries] == ["a", "a1", "b"]
    assert all(snap.size == 0 for snap in summaries)
    assert all(snap.vm_name == "vm01" for snap in summaries)


def test_end_to_end_scenario(two_snapshot_vm, thresholds, now):
    snap_set = new_summary_set(two_snapshot_vm, thresholds, now)
    s1, s2 = snap_set.snapshots

    assert s1.name == "baseline"
    assert s1.size == 2 * GB
    assert s1.age_warning_state
    assert not (s1.age_critical_state or s1.size_warning_state or s1.size_critical_state)

    assert s2.name == "before-upgrade"
    assert s2.size == 1 * GB + 512 * MB
    assert not (s2.age_warning_state or s2.age_critical_state)
    assert not (s2.size_warning_state or s2.size_critical_state)

    assert snap_set.size == 3 * GB + 512 * MB
    assert snap_set.size_hr == "3.5GB"
    assert not snap_set.is_size_warning_state()
    assert not snap_set.is_size_critical_state()

    sets = build_summary_sets([two_snapshot_vm], thresholds, now)
    assert sets.verdict() is State.WARNING


def test_branching_forest_attributes_every_file_once(now, thresholds):
    """
    Root "a" with children "b" and "c" (reverted to "a" before taking "c"),
    plus a second root "d". "c" is active; deltas 13/14 are live growth.
    """
    sizes = {
        1: 1 * KB, 2: 10 * GB,           # base disk
        3: 1 * KB, 4: 512 * MB,          # delta opened by "a", frozen by "b"
        7: 1 * KB, 8: 256 * MB,          # delta opened after reverting to "a"
        13: 1 * KB, 14: 64 * MB,         # running delta after "c"
        10: 100 * MB, 11: 200 * MB, 12: 300 * MB, 15: 50 * MB,  # data files
        20: 4 * KB,                      # vmx
    }
    kinds = {10: FileKind.SNAPSHOT_DATA, 11: FileKind.SNAPSHOT_DATA,
             12: FileKind.SNAPSHOT_DATA, 15: FileKind.SNAPSHOT_DATA, 20: FileKind.OTHER}
    files = [
        FileRecord(key, f"file-{key}", size, kinds.get(key, FileKind.DISK_EXTENT))
        for key, size in sizes.items()
    ]
    vm = MachineInventory(
        name="forest01",
        moid="vm-5",
        files=files,
        disks=[(1, 2, 7, 8, 13, 14)],
        snapshot_layouts=[
            SnapshotLayout("a", data_key=10, disks=((1, 2),)),
            SnapshotLayout("b", data_key=11, disks=((1, 2, 3, 4),)),
            SnapshotLayout("c", data_key=12, disks=((1, 2, 7, 8),)),
            SnapshotLayout("d", data_key=15, disks=((1, 2),)),
        ],
        root_snapshots=[
            _node(now, "a", [_node(now, "b"), _node(now, "c")]),
            _node(now, "d"),
        ],
        current_snapshot_id="c",
    )

    snap_set = new_summary_set(vm, thresholds, now)

    assert {snap.snapshot_id: snap.size for snap in snap_set.snapshots} == {
        "a": 100 * MB,
        "b": 200 * MB + 1 * KB + 512 * MB,
        "c": 300 * MB + 1 * KB + 256 * MB + 1 * KB + 64 * MB,
        "d": 50 * MB,
    }
    # every file outside the base disk and the vmx, each counted once
    owned = [3, 4, 7, 8, 10, 11, 12, 13, 14, 15]
    assert snap_set.size == sum(sizes[key] for key in owned)


def test_non_active_snapshot_never_includes_drift(two_snapshot_vm, thresholds, now):
    two_snapshot_vm.current_snapshot_id = "snapshot-1"

    s1, s2 = walk_snapshot_tree(two_snapshot_vm, thresholds, now)

    assert s2.size == 1 * GB
    # snapshot-1 is now active: attached files 3-6 outside its layout count toward it
    assert s1.size == 2 * GB + 1 * GB + 1024


def test_machines_without_snapshots_produce_no_set(two_snapshot_vm, thresholds, now):
    empty = MachineInventory(name="empty", moid="vm-2")

    sets = build_summary_sets([empty, two_snapshot_vm], thresholds, now)

    assert [snap_set.vm_name for snap_set in sets] == ["app01"]


def test_injected_logger_receives_debug_detail(two_snapshot_vm, thresholds, now, caplog):
    logger = logging.getLogger("tests.walker")

    with caplog.at_level(logging.DEBUG, logger="tests.walker"):
        new_summary_set(two_snapshot_vm, thresholds, now, logger)

    assert "Processing snapshot: [ID: snapshot-1" in caplog.text
    assert "Cumulative snapshot size for VM app01" in caplog.text


def test_walk_is_quiet_without_logger(two_snapshot_vm, thresholds, now, caplog):
    with caplog.at_level(logging.DEBUG):
        walk_snapshot_tree(two_snapshot_vm, thresholds, now)

    assert caplog.records == []
