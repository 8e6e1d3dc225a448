"""
Nagios plugins for vSphere snapshot age and size

Usage:
    check-vmware-snapshots-age  --config config/vsphere-snapshots.yaml
    check-vmware-snapshots-size --size-warning 20 --size-critical 40
    list-vmware-snapshots --vm app01

Examples:
    # Alert when snapshots are older than 7 (warning) or 14 (critical) days
    check-vmware-snapshots-age --age-warning 7 --age-critical 14

    # Alert when a VM's snapshots combined exceed 50 GB (warning) or 100 GB (critical)
    check-vmware-snapshots-size --size-warning 50 --size-critical 100

    # Skip VMs and limit the check to one resource pool
    check-vmware-snapshots-age --ignore-vm build01,build02 --include-rp Production
"""

import argparse
import dataclasses
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from . import inventory
from .config import (
    DEFAULT_CONFIG_PATH,
    LOG_LEVELS,
    Config,
    ConfigError,
    load_config,
    parse_config,
    resolve_password,
)
from .log import setup_logging
from .report import (
    CHECK_AGE,
    CHECK_SIZE,
    CheckResult,
    EvaluationScope,
    evaluate_check,
    failure_result,
    list_vm_snapshots,
)
from .walker import build_summary_sets


def _csv_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser(check: Optional[str]) -> argparse.ArgumentParser:
    """Argument parser for the given check type (None for the listing tool)."""
    descriptions = {
        CHECK_AGE: "Check vSphere VM snapshots against age thresholds",
        CHECK_SIZE: "Check vSphere VM snapshots against cumulative size thresholds",
        None: "List snapshots of a vSphere VM",
    }
    parser = argparse.ArgumentParser(
        description=descriptions[check],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file",
    )
    parser.add_argument("--server", help="vCenter server or ESXi host name")
    parser.add_argument("--port", type=int, help="vSphere API port (default: 443)")
    parser.add_argument("--username", help="Username for the vSphere environment")
    parser.add_argument("--domain", help="Domain (e.g. vsphere.local) of the user")
    parser.add_argument(
        "--trust-cert",
        action="store_true",
        default=None,
        help="Do not validate the vSphere certificate",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Logging level for messages written to stderr",
    )

    if check is None:
        parser.add_argument("--vm", required=True, help="Name of the VM to list")
        return parser

    parser.add_argument(
        "--include-rp",
        type=_csv_list,
        help="Comma-separated resource pools to evaluate exclusively",
    )
    parser.add_argument(
        "--exclude-rp",
        type=_csv_list,
        help="Comma-separated resource pools to skip",
    )
    parser.add_argument(
        "--ignore-vm",
        type=_csv_list,
        help="Comma-separated VM names to skip",
    )

    if check == CHECK_AGE:
        parser.add_argument(
            "--age-warning", type=int, help="Snapshot age in days for WARNING"
        )
        parser.add_argument(
            "--age-critical", type=int, help="Snapshot age in days for CRITICAL"
        )
    else:
        parser.add_argument(
            "--size-warning",
            type=int,
            help="Combined snapshot size per VM in GB for WARNING",
        )
        parser.add_argument(
            "--size-critical",
            type=int,
            help="Combined snapshot size per VM in GB for CRITICAL",
        )

    return parser


def build_config(args: argparse.Namespace) -> Config:
    """Load the config file, if any, and apply command line overrides."""
    if Path(args.config).exists():
        config = load_config(args.config)
    elif args.server and args.username:
        config = parse_config(
            {"vcenter": {"hostname": args.server, "username": args.username}}
        )
    else:
        raise ConfigError(
            f"Configuration file not found: {args.config}\n"
            "Provide a config file or --server and --username"
        )

    vcenter = config.vcenter
    if args.server:
        vcenter.hostname = args.server
    if args.username:
        vcenter.username = args.username
    if args.port is not None:
        vcenter.port = args.port
    if args.domain:
        vcenter.domain = args.domain
    if args.trust_cert:
        vcenter.trust_cert = True
    if args.log_level:
        config.log_level = args.log_level

    filters = config.filters
    if getattr(args, "include_rp", None):
        filters.include_resource_pools = args.include_rp
    if getattr(args, "exclude_rp", None):
        filters.exclude_resource_pools = args.exclude_rp
    if getattr(args, "ignore_vm", None):
        filters.ignored_vms = args.ignore_vm
    if filters.include_resource_pools and filters.exclude_resource_pools:
        raise ConfigError("Only one of --include-rp or --exclude-rp may be specified")

    overrides = {
        "age_warning_days": getattr(args, "age_warning", None),
        "age_critical_days": getattr(args, "age_critical", None),
        "size_warning_gb": getattr(args, "size_warning", None),
        "size_critical_gb": getattr(args, "size_critical", None),
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if overrides:
        try:
            config.thresholds = dataclasses.replace(config.thresholds, **overrides)
        except ValueError as e:
            raise ConfigError(f"Invalid thresholds: {e}") from e

    return config


def _connect(config: Config):
    resolve_password(config)
    vcenter = config.vcenter
    return inventory.connect_vcenter(
        hostname=vcenter.hostname,
        username=vcenter.username,
        password=vcenter.password,
        port=vcenter.port,
        domain=vcenter.domain,
        trust_cert=vcenter.trust_cert,
    )


def run_check(
    check: str, config: Config, now: Optional[datetime] = None
) -> CheckResult:
    """Retrieve inventory, evaluate snapshots and build the plugin result."""
    log = setup_logging(config.log_level)
    now = now or datetime.now(timezone.utc)
    thresholds = config.thresholds
    filters = config.filters
    server = config.vcenter.hostname

    log.debug(
        "Running %s check against %s (thresholds: %s, ignored VMs: %s)",
        check,
        server,
        thresholds,
        filters.ignored_vms,
    )

    si = None
    try:
        si = _connect(config)

        log.debug("Validating resource pools")
        pools = inventory.get_resource_pools(si)
        inventory.validate_resource_pools(
            pools, filters.include_resource_pools, filters.exclude_resource_pools
        )
        eligible_pools = inventory.get_eligible_resource_pools(
            pools, filters.include_resource_pools, filters.exclude_resource_pools
        )

        log.debug("Retrieving VMs from eligible resource pools")
        vms = inventory.get_vms(si)
        pool_vms = inventory.filter_vms_by_resource_pool(
            si,
            vms,
            pools,
            filters.include_resource_pools,
            filters.exclude_resource_pools,
        )
        filtered_vms = inventory.exclude_vms_by_name(pool_vms, filters.ignored_vms)
        log.debug("Filtered VMs: %s", ", ".join(inventory.vm_names(filtered_vms)))

        vms_with_snapshots = inventory.filter_vms_with_snapshots(filtered_vms)
        machines = [inventory.to_machine_inventory(vm) for vm in vms_with_snapshots]

        snapshot_sets = build_summary_sets(machines, thresholds, now, log)

        scope = EvaluationScope(
            server=server,
            total_vms=len(vms),
            evaluated_vms=len(filtered_vms),
            ignored_vms=list(filters.ignored_vms),
            include_resource_pools=list(filters.include_resource_pools),
            exclude_resource_pools=list(filters.exclude_resource_pools),
            resource_pools=inventory.resource_pool_names(eligible_pools),
        )
        result = evaluate_check(check, snapshot_sets, thresholds, scope, now)

    except ConfigError as e:
        log.error("Error initializing application: %s", e)
        return failure_result("Error initializing application", e)
    except inventory.VCenterConnectionError as e:
        log.error("Error logging into %s: %s", server, e)
        return failure_result(f'Error logging into "{server}"', e)
    except inventory.ResourcePoolError as e:
        log.error("Error validating include/exclude lists: %s", e)
        return failure_result("Error validating include/exclude lists", e)
    except inventory.InventoryError as e:
        log.error("Error retrieving inventory: %s", e)
        return failure_result(f'Error retrieving inventory from "{server}"', e)
    finally:
        inventory.disconnect_vcenter(si)

    if result.last_error:
        log.error(
            "%s: %s (VMs with snapshots: %d, snapshots: %d)",
            result.state.label,
            result.last_error,
            len(snapshot_sets),
            snapshot_sets.snapshots(),
        )
    return result


def _main(check: str, argv: Optional[List[str]] = None) -> int:
    args = build_parser(check).parse_args(argv)

    try:
        config = build_config(args)
    except ConfigError as e:
        setup_logging().error("Error initializing application: %s", e)
        result = failure_result("Error initializing application", e)
    else:
        try:
            result = run_check(check, config)
        except KeyboardInterrupt:
            print("\n\nOperation cancelled by user")
            return 130

    print(result.render(), end="")
    return result.exit_code


def main_age(argv: Optional[List[str]] = None) -> int:
    """Entry point for the snapshots age check."""
    return _main(CHECK_AGE, argv)


def main_size(argv: Optional[List[str]] = None) -> int:
    """Entry point for the snapshots size check."""
    return _main(CHECK_SIZE, argv)


def main_list(argv: Optional[List[str]] = None) -> int:
    """List every snapshot of one VM, depth-first."""
    args = build_parser(None).parse_args(argv)

    si = None
    try:
        config = build_config(args)
        setup_logging(config.log_level)
        si = _connect(config)

        vm = inventory.find_vm_by_name(inventory.get_vms(si), args.vm)
        if vm is None:
            print(f"Error: VM '{args.vm}' not found")
            return 1

        machine = inventory.to_machine_inventory(vm)
        if not machine.has_snapshots:
            print(f"No snapshots found for VM '{machine.name}'")
            return 0

        for line in list_vm_snapshots(machine, datetime.now(timezone.utc)):
            print(line)
        return 0

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        return 130
    except (ConfigError, inventory.InventoryError) as e:
        print(f"\nError: {e}")
        return 1
    finally:
        inventory.disconnect_vcenter(si)


if __name__ == "__main__":
    sys.exit(main_age())
