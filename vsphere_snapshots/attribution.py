"""Size attribution for a single snapshot node."""

from .disk_chains import DiskChainKeys
from .file_layout import FileLayoutIndex


def attribute_size(
    keys: DiskChainKeys,
    index: FileLayoutIndex,
    has_parent: bool,
    is_active: bool,
) -> int:
    """
    Bytes owned by one snapshot node.

    A root snapshot drops every key still attached to the VM, leaving its
    own data file and deltas. A child snapshot drops its parent's disk
    chains, leaving what was introduced since the parent was taken.

    The active snapshot also owns attached disk files that belong to no
    snapshot layout: the growth since the last fixed snapshot point.
    """
    if has_parent:
        owned = keys.snapshot_keys - keys.parent_disk_keys
    else:
        owned = keys.snapshot_keys - keys.all_disk_keys

    size = index.total_size(owned)

    if is_active:
        remaining = keys.all_disk_keys - keys.snapshot_keys
        size += index.total_size(remaining)

    return size
