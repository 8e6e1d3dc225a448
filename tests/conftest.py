from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pyVmomi import vim

from vsphere_snapshots.models import (
    FileKind,
    FileRecord,
    MachineInventory,
    SnapshotLayout,
    SnapshotNode,
)
from vsphere_snapshots.thresholds import Thresholds
from vsphere_snapshots.units import GB, KB, MB

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def thresholds():
    return Thresholds(
        age_warning_days=30,
        age_critical_days=60,
        size_warning_gb=10,
        size_critical_gb=20,
    )


@pytest.fixture
def two_snapshot_vm():
    """
    VM "app01" with base disk (1, 2), snapshot S1 (root, 40 days old) and
    its child S2 (5 days old, active).

    S1 owns its 2 GB data file. S2 owns its data file plus the delta disk
    created when S1 was taken (1 GB in total). The delta disk created when
    S2 was taken (0.5 GB) is live growth belonging to no snapshot layout.
    """
    files = [
        FileRecord(1, "[ds1] app01/app01.vmdk", 1 * KB, FileKind.DISK_DESCRIPTOR),
        FileRecord(2, "[ds1] app01/app01-flat.vmdk", 40 * GB, FileKind.DISK_EXTENT),
        FileRecord(3, "[ds1] app01/app01-000001.vmdk", 1 * KB, FileKind.DISK_DESCRIPTOR),
        FileRecord(4, "[ds1] app01/app01-000001-delta.vmdk", 512 * MB, FileKind.DISK_EXTENT),
        FileRecord(5, "[ds1] app01/app01-000002.vmdk", 1 * KB, FileKind.DISK_DESCRIPTOR),
        FileRecord(6, "[ds1] app01/app01-000002-delta.vmdk", 512 * MB - 1 * KB, FileKind.DISK_EXTENT),
        FileRecord(10, "[ds1] app01/app01-Snapshot1.vmsn", 2 * GB, FileKind.SNAPSHOT_DATA),
        FileRecord(11, "[ds1] app01/app01-Snapshot2.vmsn", 512 * MB - 1 * KB, FileKind.SNAPSHOT_DATA),
        FileRecord(20, "[ds1] app01/app01.vmx", 4 * KB, FileKind.OTHER),
        FileRecord(21, "[ds1] app01/app01.nvram", 256 * KB, FileKind.OTHER),
    ]
    s2 = SnapshotNode(
        snapshot_id="snapshot-2",
        name="before-upgrade",
        description="pre patching",
        create_time=NOW - timedelta(days=5),
        id=2,
    )
    s1 = SnapshotNode(
        snapshot_id="snapshot-1",
        name="baseline",
        description="clean install",
        create_time=NOW - timedelta(days=40),
        id=1,
        children=[s2],
    )
    return MachineInventory(
        name="app01",
        moid="vm-101",
        files=files,
        disks=[(1, 2, 3, 4, 5, 6)],
        snapshot_layouts=[
            SnapshotLayout("snapshot-1", data_key=10, disks=((1, 2),)),
            SnapshotLayout("snapshot-2", data_key=11, disks=((1, 2, 3, 4),)),
        ],
        root_snapshots=[s1],
        current_snapshot_id="snapshot-2",
        resource_pool="Production",
        power_state="poweredOn",
    )


def _pool(pool):
    if isinstance(pool, str):
        return SimpleNamespace(name=pool, parent=None)
    return pool


def _vim_chain(keys):
    return SimpleNamespace(chain=[SimpleNamespace(fileKey=list(keys))])


def _vim_tree(moid, name, create_time, children=(), snap_id=1):
    return SimpleNamespace(
        snapshot=SimpleNamespace(_moId=moid),
        name=name,
        description=f"{name} description",
        createTime=create_time,
        id=snap_id,
        childSnapshotList=list(children),
    )


@pytest.fixture
def make_vim_vm():
    """Factory for pyVmomi VirtualMachine stand-ins."""

    def _make(
        name,
        moid="vm-1",
        snapshot_age_days=None,
        snapshot_size=1 * GB,
        resource_pool="Production",
        created=None,
    ):
        created = created or datetime.now(timezone.utc)
        files = [
            SimpleNamespace(key=1, name=f"{name}.vmdk", size=1024, type="diskDescriptor"),
            SimpleNamespace(key=2, name=f"{name}-flat.vmdk", size=10 * GB, type="diskExtent"),
            SimpleNamespace(key=20, name=f"{name}.vmx", size=4096, type="config"),
        ]
        layout = SimpleNamespace(file=files, disk=[_vim_chain([1, 2])], snapshot=[])
        snapshot = None

        if snapshot_age_days is not None:
            files.append(
                SimpleNamespace(
                    key=10, name=f"{name}-Snapshot1.vmsn", size=snapshot_size, type="snapshotData"
                )
            )
            layout.snapshot = [
                SimpleNamespace(
                    key=SimpleNamespace(_moId=f"{moid}-snapshot-1"),
                    dataKey=10,
                    disk=[_vim_chain([1, 2])],
                )
            ]
            tree = _vim_tree(
                f"{moid}-snapshot-1",
                "nightly",
                created - timedelta(days=snapshot_age_days),
            )
            snapshot = SimpleNamespace(
                rootSnapshotList=[tree],
                currentSnapshot=SimpleNamespace(_moId=f"{moid}-snapshot-1"),
            )

        return SimpleNamespace(
            name=name,
            _moId=moid,
            layoutEx=layout,
            snapshot=snapshot,
            resourcePool=_pool(resource_pool),
            runtime=SimpleNamespace(powerState="poweredOn"),
        )

    return _make


def _in_pool(vm, pool) -> bool:
    current = vm.resourcePool
    while current is not None:
        if current is pool:
            return True
        current = getattr(current, "parent", None)
    return False


class FakeServiceInstance:
    """In-memory ServiceInstance serving recursive container views.

    A view over the root folder lists every VM or resource pool. A view
    over a resource pool lists the VMs in that pool or any of its child
    pools.
    """

    def __init__(self, vms, pools):
        self.vms = vms
        self.pools = pools
        self.root_folder = SimpleNamespace(name="vm")
        self.destroyed_views = 0

    def RetrieveContent(self):
        return SimpleNamespace(
            rootFolder=self.root_folder,
            viewManager=SimpleNamespace(CreateContainerView=self._create_view),
        )

    def _create_view(self, container, view_type, recursive):
        if container is self.root_folder:
            objects = self.pools if view_type == [vim.ResourcePool] else self.vms
        else:
            objects = [vm for vm in self.vms if _in_pool(vm, container)]
        return SimpleNamespace(view=list(objects), Destroy=self._destroy)

    def _destroy(self):
        self.destroyed_views += 1


@pytest.fixture
def pool_tree():
    """Hidden parent pool with Production (and its child Web) and Test."""
    resources = SimpleNamespace(name="Resources", parent=None)
    production = SimpleNamespace(name="Production", parent=resources)
    web = SimpleNamespace(name="Web", parent=production)
    test = SimpleNamespace(name="Test", parent=resources)
    return SimpleNamespace(
        resources=resources,
        production=production,
        web=web,
        test=test,
        all=[resources, production, web, test],
    )


@pytest.fixture
def make_service_instance():
    return FakeServiceInstance
