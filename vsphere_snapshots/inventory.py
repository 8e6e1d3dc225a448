"""
vSphere inventory retrieval

Connects to vCenter (or a standalone ESXi host) with pyVmomi, retrieves
virtual machines and resource pools, applies the include/exclude filters
and converts VirtualMachine managed objects into MachineInventory values
for the snapshot evaluation engine.
"""

import logging
import ssl
from typing import Iterable, List, Optional, Sequence

import urllib3
from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from .models import (
    FileKind,
    FileRecord,
    MachineInventory,
    SnapshotLayout,
    SnapshotNode,
)

logger = logging.getLogger(__name__)

# Hidden resource pool present on every host/cluster; parent of all other pools.
PARENT_RESOURCE_POOL = "Resources"


class InventoryError(Exception):
    """Retrieving or filtering vSphere inventory failed."""


class VCenterConnectionError(InventoryError, ConnectionError):
    """Logging into the vSphere environment failed."""


class ResourcePoolError(InventoryError):
    """Requested resource pools are invalid or missing."""


def connect_vcenter(
    hostname: str,
    username: str,
    password: str,
    port: int = 443,
    domain: Optional[str] = None,
    trust_cert: bool = False,
) -> vim.ServiceInstance:
    """Connect to vCenter Server and return the service instance."""
    user = f"{username}@{domain}" if domain else username
    logger.debug("Logging into %s:%d as %s", hostname, port, user)

    try:
        if trust_cert:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            si = SmartConnect(
                host=hostname,
                user=user,
                pwd=password,
                port=port,
                sslContext=ssl._create_unverified_context(),
            )
        else:
            si = SmartConnect(host=hostname, user=user, pwd=password, port=port)
    except Exception as e:
        raise VCenterConnectionError(f"Failed to connect to {hostname}: {e}") from e

    logger.debug("Successfully logged into %s", hostname)
    return si


def disconnect_vcenter(si: Optional[vim.ServiceInstance]) -> None:
    """Disconnect from vCenter Server."""
    if si is None:
        return
    try:
        Disconnect(si)
    except Exception as e:
        logger.error("Failed to logout: %s", e)


def _get_objects(si: vim.ServiceInstance, view_type: list, container=None) -> list:
    """
    Retrieve managed objects of the given types below a container.

    The container defaults to the root folder. The view is recursive, so
    objects in nested folders or child resource pools are included.
    """
    content = si.RetrieveContent()
    container_view = content.viewManager.CreateContainerView(
        container or content.rootFolder, view_type, True
    )
    try:
        return list(container_view.view)
    finally:
        container_view.Destroy()


def get_vms(si: vim.ServiceInstance) -> List[vim.VirtualMachine]:
    """Get all VMs from vCenter inventory."""
    try:
        vms = _get_objects(si, [vim.VirtualMachine])
    except Exception as e:
        raise InventoryError(f"Failed to retrieve virtual machines: {e}") from e
    logger.debug("Retrieved %d virtual machines", len(vms))
    return vms


def get_resource_pools(si: vim.ServiceInstance) -> List[vim.ResourcePool]:
    """Get all resource pools from vCenter inventory."""
    try:
        return _get_objects(si, [vim.ResourcePool])
    except Exception as e:
        raise InventoryError(f"Failed to retrieve resource pools: {e}") from e


def resource_pool_names(pools: Iterable) -> List[str]:
    try:
        return [pool.name for pool in pools]
    except Exception as e:
        raise InventoryError(f"Failed to read resource pool names: {e}") from e


def validate_resource_pools(
    pools: Sequence,
    include: Sequence[str],
    exclude: Sequence[str],
) -> None:
    """Ensure include/exclude lists are usable and name existing pools."""
    if include and exclude:
        raise ResourcePoolError(
            "only one of the include or exclude resource pool lists may be specified"
        )

    known = set(resource_pool_names(pools))
    missing = [name for name in list(include) + list(exclude) if name not in known]
    if missing:
        raise ResourcePoolError(
            f"resource pools not found: {', '.join(sorted(missing))}"
        )


def get_eligible_resource_pools(
    pools: Sequence,
    include: Sequence[str],
    exclude: Sequence[str],
) -> list:
    """Resource pools to report as evaluated, honoring include/exclude lists."""
    named = list(zip(resource_pool_names(pools), pools))
    if include:
        return [pool for name, pool in named if name in include]
    return [
        pool
        for name, pool in named
        if name not in exclude and name != PARENT_RESOURCE_POOL
    ]


def sort_vms_by_name(vms: Iterable) -> list:
    """VMs ordered by case-insensitive name."""
    try:
        return sorted(vms, key=lambda vm: vm.name.lower())
    except Exception as e:
        raise InventoryError(f"Failed to read virtual machine names: {e}") from e


def get_vms_from_resource_pools(si: vim.ServiceInstance, pools: Iterable) -> list:
    """
    VMs within the given resource pools or any of their child pools.

    A VM reachable from more than one pool (the hidden parent pool contains
    every other pool) is listed once.
    """
    vms = {}
    try:
        for pool in pools:
            for vm in _get_objects(si, [vim.VirtualMachine], pool):
                vms.setdefault(vm._moId, vm)
    except Exception as e:
        raise InventoryError(
            f"Failed to retrieve virtual machines from resource pools: {e}"
        ) from e

    logger.debug("Retrieved %d virtual machines from resource pools", len(vms))
    return sort_vms_by_name(vms.values())


def filter_vms_by_resource_pool(
    si: vim.ServiceInstance,
    vms: Iterable,
    pools: Sequence,
    include: Sequence[str],
    exclude: Sequence[str],
) -> list:
    """
    Keep VMs within included pools, or drop VMs within excluded pools.

    Pool membership is recursive: a VM in a child pool of a named pool is
    included or excluded along with it.
    """
    named = list(zip(resource_pool_names(pools), pools))
    if include:
        return get_vms_from_resource_pools(
            si, [pool for name, pool in named if name in include]
        )
    if exclude:
        excluded = {
            vm._moId
            for vm in get_vms_from_resource_pools(
                si, [pool for name, pool in named if name in exclude]
            )
        }
        return sort_vms_by_name(vm for vm in vms if vm._moId not in excluded)
    return sort_vms_by_name(vms)


def exclude_vms_by_name(vms: Iterable, ignored: Sequence[str]) -> list:
    """Drop VMs whose name is in the ignore list, ignoring case."""
    ignored_names = {name.lower() for name in ignored}
    try:
        kept = [vm for vm in vms if vm.name.lower() not in ignored_names]
    except Exception as e:
        raise InventoryError(f"Failed to read virtual machine names: {e}") from e
    return sort_vms_by_name(kept)


def filter_vms_with_snapshots(vms: Iterable) -> list:
    """VMs which have at least one snapshot tree."""
    try:
        return [
            vm
            for vm in vms
            if vm.snapshot is not None and vm.snapshot.rootSnapshotList
        ]
    except Exception as e:
        raise InventoryError(f"Failed to read virtual machine snapshots: {e}") from e


def find_vm_by_name(vms: Iterable, vm_name: str):
    """Find a VM by name, None if not present."""
    try:
        for vm in vms:
            if vm.name == vm_name:
                return vm
    except Exception as e:
        raise InventoryError(f"Failed to read virtual machine names: {e}") from e
    return None


def vm_names(vms: Iterable) -> List[str]:
    try:
        return [vm.name for vm in vms]
    except Exception as e:
        raise InventoryError(f"Failed to read virtual machine names: {e}") from e


def _chain_keys(disk) -> tuple:
    """Flatten the file keys of every link in a layoutEx disk chain."""
    return tuple(key for link in (disk.chain or []) for key in (link.fileKey or []))


def _convert_snapshot_tree(tree) -> SnapshotNode:
    return SnapshotNode(
        snapshot_id=tree.snapshot._moId,
        name=tree.name,
        create_time=tree.createTime,
        description=tree.description or "",
        id=tree.id or 0,
        children=[
            _convert_snapshot_tree(child) for child in (tree.childSnapshotList or [])
        ],
    )


def _resource_pool_name(vm) -> Optional[str]:
    return vm.resourcePool.name if vm.resourcePool else None


def to_machine_inventory(vm) -> MachineInventory:
    """
    Copy the layout and snapshot properties of a VirtualMachine.

    Every property read is a round trip to vCenter; a VM removed since it
    was listed raises InventoryError.
    """
    try:
        return _to_machine_inventory(vm)
    except Exception as e:
        raise InventoryError(
            f"Failed to read layout of virtual machine {vm._moId}: {e}"
        ) from e


def _to_machine_inventory(vm) -> MachineInventory:
    layout = vm.layoutEx

    files = []
    disks = []
    snapshot_layouts = []
    if layout is not None:
        files = [
            FileRecord(
                key=f.key,
                name=f.name,
                size=f.size or 0,
                kind=FileKind.from_vsphere(f.type),
            )
            for f in (layout.file or [])
        ]
        disks = [_chain_keys(disk) for disk in (layout.disk or [])]
        snapshot_layouts = [
            SnapshotLayout(
                snapshot_id=snap.key._moId,
                data_key=snap.dataKey,
                disks=tuple(_chain_keys(disk) for disk in (snap.disk or [])),
            )
            for snap in (layout.snapshot or [])
        ]

    roots = []
    current = None
    if vm.snapshot is not None:
        roots = [
            _convert_snapshot_tree(tree) for tree in (vm.snapshot.rootSnapshotList or [])
        ]
        if vm.snapshot.currentSnapshot is not None:
            current = vm.snapshot.currentSnapshot._moId

    runtime = vm.runtime
    return MachineInventory(
        name=vm.name,
        moid=vm._moId,
        files=files,
        disks=disks,
        snapshot_layouts=snapshot_layouts,
        root_snapshots=roots,
        current_snapshot_id=current,
        resource_pool=_resource_pool_name(vm),
        power_state=str(runtime.powerState) if runtime is not None else "unknown",
    )
