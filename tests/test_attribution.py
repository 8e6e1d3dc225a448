from vsphere_snapshots.attribution import attribute_size
from vsphere_snapshots.disk_chains import DiskChainKeys, all_disk_keys, resolve_disk_chains
from vsphere_snapshots.file_layout import build_file_layout_index
from vsphere_snapshots.models import FileKind, FileRecord
from vsphere_snapshots.units import GB, MB


def _keys(vm, snapshot_id, parent_id):
    return resolve_disk_chains(
        all_disk_keys(vm.disks), vm.snapshot_layouts, snapshot_id, parent_id
    )


def test_root_snapshot_keeps_only_its_own_files(two_snapshot_vm):
    index = build_file_layout_index(two_snapshot_vm.files)

    size = attribute_size(
        _keys(two_snapshot_vm, "snapshot-1", None), index, has_parent=False, is_active=False
    )

    assert size == 2 * GB


def test_child_snapshot_owns_delta_since_parent(two_snapshot_vm):
    index = build_file_layout_index(two_snapshot_vm.files)

    size = attribute_size(
        _keys(two_snapshot_vm, "snapshot-2", "snapshot-1"),
        index,
        has_parent=True,
        is_active=False,
    )

    assert size == 1 * GB


def test_active_snapshot_includes_live_growth(two_snapshot_vm):
    index = build_file_layout_index(two_snapshot_vm.files)

    size = attribute_size(
        _keys(two_snapshot_vm, "snapshot-2", "snapshot-1"),
        index,
        has_parent=True,
        is_active=True,
    )

    assert size == 1 * GB + 512 * MB


def test_root_isolation_with_identical_chains():
    files = [
        FileRecord(1, "vm.vmdk", 1024, FileKind.DISK_DESCRIPTOR),
        FileRecord(2, "vm-flat.vmdk", 10 * GB, FileKind.DISK_EXTENT),
        FileRecord(10, "vm-Snapshot1.vmsn", 0, FileKind.SNAPSHOT_DATA),
    ]
    keys = DiskChainKeys(
        all_disk_keys=frozenset({1, 2}),
        snapshot_keys=frozenset({10, 1, 2}),
        parent_disk_keys=frozenset(),
    )

    size = attribute_size(keys, build_file_layout_index(files), has_parent=False, is_active=False)

    assert size == 0


def test_root_isolation_without_data_file_record():
    files = [
        FileRecord(1, "vm.vmdk", 1024, FileKind.DISK_DESCRIPTOR),
        FileRecord(2, "vm-flat.vmdk", 10 * GB, FileKind.DISK_EXTENT),
    ]
    keys = DiskChainKeys(
        all_disk_keys=frozenset({1, 2}),
        snapshot_keys=frozenset({10, 1, 2}),
        parent_disk_keys=frozenset(),
    )

    assert attribute_size(keys, build_file_layout_index(files), False, False) == 0


def test_node_without_layout_only_counts_drift_when_active():
    files = [FileRecord(5, "vm-000001-delta.vmdk", 3 * MB, FileKind.DISK_EXTENT)]
    keys = DiskChainKeys(
        all_disk_keys=frozenset({5}),
        snapshot_keys=frozenset(),
        parent_disk_keys=frozenset(),
    )
    index = build_file_layout_index(files)

    assert attribute_size(keys, index, has_parent=False, is_active=False) == 0
    assert attribute_size(keys, index, has_parent=False, is_active=True) == 3 * MB
