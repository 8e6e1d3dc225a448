"""
Nagios-style check output for the snapshot age and size checks.

The one-line summary is the line most prominent in notifications; the
long report lists snapshots exceeding and not yet exceeding thresholds
along with the scope of the evaluation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .models import MachineInventory
from .states import State
from .summary import SummarySets
from .thresholds import Thresholds
from .walker import iter_snapshot_nodes

CHECK_AGE = "age"
CHECK_SIZE = "size"

AGE_SUFFIX = "d"
SIZE_SUFFIX = "GB"

SNAPSHOT_AGE_THRESHOLD_CROSSED = "snapshot exceeds specified age threshold"
SNAPSHOT_SIZE_THRESHOLD_CROSSED = "snapshot exceeds specified size threshold"

LIST_ENTRY_TEMPLATE = '* "{vm}" [Age: {age}, Size (item: {size}, sum: {sum}), Name: "{name}", ID: {moid}]'


@dataclass
class EvaluationScope:
    """What was evaluated, for the report footer."""

    server: str = ""
    total_vms: int = 0
    evaluated_vms: int = 0
    ignored_vms: List[str] = field(default_factory=list)
    include_resource_pools: List[str] = field(default_factory=list)
    exclude_resource_pools: List[str] = field(default_factory=list)
    resource_pools: List[str] = field(default_factory=list)


@dataclass
class CheckResult:
    """Final plugin result: state, output text and exit code."""

    state: State
    service_output: str
    long_service_output: str = ""
    last_error: Optional[str] = None
    critical_threshold: str = ""
    warning_threshold: str = ""

    @property
    def exit_code(self) -> int:
        return self.state.exit_code

    def render(self) -> str:
        lines = [self.service_output]

        if self.last_error:
            lines += ["", "**ERRORS**", "", f"* {self.last_error}"]

        if self.critical_threshold or self.warning_threshold:
            lines += [
                "",
                "**THRESHOLDS**",
                "",
                f"* CRITICAL: {self.critical_threshold}",
                f"* WARNING: {self.warning_threshold}",
            ]

        if self.long_service_output:
            lines += ["", "**DETAILED INFO**", "", self.long_service_output.rstrip("\n")]

        return "\n".join(lines) + "\n"


def age_one_line_summary(
    state: State,
    snapshot_sets: SummarySets,
    thresholds: Thresholds,
    scope: EvaluationScope,
    now: datetime,
) -> str:
    """One-line summary for the snapshots age check."""
    evaluated = (
        f"(evaluated {scope.evaluated_vms} VMs, {snapshot_sets.snapshots()} Snapshots, "
        f"{len(scope.resource_pools)} Resource Pools)"
    )

    if snapshot_sets.is_age_critical_state():
        days = thresholds.age_critical_days
    elif snapshot_sets.is_age_warning_state():
        days = thresholds.age_warning_days
    else:
        return (
            f"{state.label}: No snapshots older than {thresholds.age_warning_days} "
            f"days detected {evaluated}"
        )

    vms, snapshots = snapshot_sets.exceeds_age(days, now)
    return (
        f"{state.label}: {vms} VMs with {snapshots} snapshots older than {days} "
        f"days detected {evaluated}"
    )


def size_one_line_summary(
    state: State,
    snapshot_sets: SummarySets,
    thresholds: Thresholds,
    scope: EvaluationScope,
) -> str:
    """One-line summary for the snapshots size check."""
    evaluated = (
        f"(evaluated {scope.evaluated_vms} VMs, {snapshot_sets.snapshots()} Snapshots, "
        f"{len(scope.resource_pools)} Resource Pools)"
    )

    if snapshot_sets.is_size_critical_state():
        size_gb = thresholds.size_critical_gb
    elif snapshot_sets.is_size_warning_state():
        size_gb = thresholds.size_warning_gb
    else:
        return (
            f"{state.label}: No VMs, each with combined snapshots exceeding "
            f"{thresholds.size_warning_gb} {SIZE_SUFFIX} detected {evaluated}"
        )

    vms, snapshots = snapshot_sets.exceeds_size(size_gb)
    return (
        f"{state.label}: {vms} VMs with combined snapshots ({snapshots}) exceeding "
        f"{size_gb} {SIZE_SUFFIX} detected {evaluated}"
    )


def _list_entry(snap, snap_set, now: datetime) -> str:
    return LIST_ENTRY_TEMPLATE.format(
        vm=snap.vm_name,
        age=snap.age(now),
        size=snap.size_hr,
        sum=snap_set.size_hr,
        name=snap.name,
        moid=snap.snapshot_id,
    )


def snapshots_list_entries(
    check: str,
    snapshot_sets: SummarySets,
    thresholds: Thresholds,
    now: datetime,
) -> List[str]:
    """Snapshots exceeding thresholds, then snapshots not yet exceeding them."""
    if check == CHECK_AGE:
        warning, critical, suffix = (
            thresholds.age_warning_days,
            thresholds.age_critical_days,
            AGE_SUFFIX,
        )
    elif check == CHECK_SIZE:
        warning, critical, suffix = (
            thresholds.size_warning_gb,
            thresholds.size_critical_gb,
            SIZE_SUFFIX,
        )
    else:
        raise ValueError(f"unknown check type: {check!r}")

    lines = [
        f"Snapshots exceeding WARNING ({warning}{suffix}) or CRITICAL "
        f"({critical}{suffix}) {check} thresholds:",
        "",
    ]

    exceeding = []
    not_yet = []
    if check == CHECK_AGE:
        if snapshot_sets.is_age_critical_state() or snapshot_sets.is_age_warning_state():
            exceeding = [
                _list_entry(snap, snap_set, now)
                for snap_set in snapshot_sets
                for snap in snap_set.snapshots
                if snap.is_age_critical_state() or snap.is_age_warning_state()
            ]
        if snapshot_sets.has_not_yet_exceeded_age(warning, now):
            not_yet = [
                _list_entry(snap, snap_set, now)
                for snap_set in snapshot_sets
                for snap in snap_set.snapshots
                if not (snap.is_age_critical_state() or snap.is_age_warning_state())
            ]
    else:
        if snapshot_sets.is_size_critical_state() or snapshot_sets.is_size_warning_state():
            exceeding = [
                _list_entry(snap, snap_set, now)
                for snap_set in snapshot_sets
                if snap_set.is_size_critical_state() or snap_set.is_size_warning_state()
                for snap in snap_set.snapshots
            ]
        if snapshot_sets.has_not_yet_exceeded_size(warning):
            not_yet = [
                _list_entry(snap, snap_set, now)
                for snap_set in snapshot_sets
                if not (
                    snap_set.is_size_critical_state() or snap_set.is_size_warning_state()
                )
                for snap in snap_set.snapshots
            ]

    lines += exceeding or ["* None detected"]
    lines += ["", f"Snapshots *not yet* exceeding {check} thresholds:", ""]
    lines += not_yet or ["* None detected"]
    return lines


def report_footer(scope: EvaluationScope) -> List[str]:
    """Common footer summarizing the scope of the evaluation."""
    return [
        "",
        "---",
        "",
        f"* vSphere environment: {scope.server}",
        f"* VMs (evaluated: {scope.evaluated_vms}, total: {scope.total_vms})",
        # Powered off VMs are always evaluated by these checks.
        "* Powered off VMs evaluated: true",
        f"* Specified VMs to exclude ({len(scope.ignored_vms)}): "
        f"[{', '.join(scope.ignored_vms)}]",
        f"* Specified Resource Pools to explicitly include "
        f"({len(scope.include_resource_pools)}): "
        f"[{', '.join(scope.include_resource_pools)}]",
        f"* Specified Resource Pools to explicitly exclude "
        f"({len(scope.exclude_resource_pools)}): "
        f"[{', '.join(scope.exclude_resource_pools)}]",
        f"* Resource Pools evaluated ({len(scope.resource_pools)}): "
        f"[{', '.join(scope.resource_pools)}]",
    ]


def snapshots_report(
    check: str,
    snapshot_sets: SummarySets,
    thresholds: Thresholds,
    scope: EvaluationScope,
    now: datetime,
) -> str:
    """Long service output for the age or size check."""
    lines = snapshots_list_entries(check, snapshot_sets, thresholds, now)
    lines += report_footer(scope)
    return "\n".join(lines) + "\n"


def evaluate_check(
    check: str,
    snapshot_sets: SummarySets,
    thresholds: Thresholds,
    scope: EvaluationScope,
    now: datetime,
) -> CheckResult:
    """Turn the summary sets into the plugin result for one check type."""
    state = snapshot_sets.verdict(check)

    if check == CHECK_AGE:
        service_output = age_one_line_summary(
            state, snapshot_sets, thresholds, scope, now
        )
        error = SNAPSHOT_AGE_THRESHOLD_CROSSED
        critical = f"{thresholds.age_critical_days} day old snapshots present"
        warning = f"{thresholds.age_warning_days} day old snapshots present"
    else:
        service_output = size_one_line_summary(state, snapshot_sets, thresholds, scope)
        error = SNAPSHOT_SIZE_THRESHOLD_CROSSED
        critical = (
            f"{thresholds.size_critical_gb} {SIZE_SUFFIX} of combined snapshots present"
        )
        warning = (
            f"{thresholds.size_warning_gb} {SIZE_SUFFIX} of combined snapshots present"
        )

    return CheckResult(
        state=state,
        service_output=service_output,
        long_service_output=snapshots_report(
            check, snapshot_sets, thresholds, scope, now
        ),
        last_error=error if state is not State.OK else None,
        critical_threshold=critical,
        warning_threshold=warning,
    )


def failure_result(message: str, error: Exception) -> CheckResult:
    """CRITICAL result for a run which could not complete."""
    return CheckResult(
        state=State.CRITICAL,
        service_output=f"{State.CRITICAL.label}: {message}",
        last_error=str(error),
    )


def list_vm_snapshots(vm: MachineInventory, now: datetime) -> List[str]:
    """Quick listing of all snapshots of a VM, depth-first."""
    nodes = list(iter_snapshot_nodes(vm.root_snapshots))
    lines = [
        f"VM [Name: {vm.name}, Resource Pool: {vm.resource_pool or '-'}, "
        f"Power State: {vm.power_state}, Snapshots: {len(nodes)}]"
    ]
    for node, _parent in nodes:
        age_days = (now - node.create_time).total_seconds() / 86400
        active = "true" if node.snapshot_id == vm.current_snapshot_id else "false"
        lines.append(
            f"Snapshot [Name: {node.name}, Age: {age_days:.2f} days, "
            f"ID: {node.id}, MOID: {node.snapshot_id}, Active: {active}]"
        )
    return lines
