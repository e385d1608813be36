"""Round payload validation and report rendering.

Payload shape::

    {
      "hosts": {"h1": {"cpu": 8, "ram": 16}},
      "virtual_machines": {"vm1": {"cpu": 2, "ram": 4}},
      "diff": {"add": {"virtual_machines": ["vm1"]},
               "remove": {"virtual_machines": []}}
    }

Everything here is pure: a payload is fully validated before the reconciler
touches any state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from balancer.errors import ValidationError
from balancer.state import Host, RoundInput, RoundReport, VirtualMachine

logger = logging.getLogger(__name__)


def _require_int(value: Any, what: str, minimum: int) -> int:
    # bool is an int subclass; "true" is not a size
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer, got {value!r}")
    if value < minimum:
        raise ValidationError(f"{what} must be >= {minimum}, got {value}")
    return value


def _resources(spec: Any, what: str, minimum: int) -> Dict[str, int]:
    if not isinstance(spec, Mapping):
        raise ValidationError(f"{what} must be an object with cpu and ram")
    out = {}
    for key in ("cpu", "ram"):
        if key not in spec:
            raise ValidationError(f"{what} is missing {key!r}")
        out[key] = _require_int(spec[key], f"{what}.{key}", minimum)
    return out


def parse_hosts(raw: Any) -> Dict[str, Host]:
    if not isinstance(raw, Mapping):
        raise ValidationError("hosts must be an object keyed by host id")
    hosts: Dict[str, Host] = {}
    for host_id, spec in raw.items():
        res = _resources(spec, f"hosts[{host_id}]", minimum=1)
        hosts[str(host_id)] = Host(id=str(host_id), cpu_capacity=res["cpu"], ram_capacity=res["ram"])
    return hosts


def parse_vms(raw: Any) -> Dict[str, VirtualMachine]:
    if not isinstance(raw, Mapping):
        raise ValidationError("virtual_machines must be an object keyed by vm id")
    vms: Dict[str, VirtualMachine] = {}
    for vm_id, spec in raw.items():
        res = _resources(spec, f"virtual_machines[{vm_id}]", minimum=0)
        vms[str(vm_id)] = VirtualMachine(id=str(vm_id), cpu_request=res["cpu"], ram_request=res["ram"])
    return vms


def _diff_ids(diff: Mapping[str, Any], section: str) -> List[str]:
    block = diff.get(section)
    if block is None:
        return []
    if not isinstance(block, Mapping):
        raise ValidationError(f"diff.{section} must be an object")
    ids = block.get("virtual_machines", [])
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValidationError(f"diff.{section}.virtual_machines must be a list of ids")
    return ids


def parse_round(payload: Any) -> RoundInput:
    """Validate a raw round payload into a RoundInput."""
    if not isinstance(payload, Mapping):
        raise ValidationError("round payload must be a JSON object")

    hosts = parse_hosts(payload["hosts"]) if payload.get("hosts") is not None else None
    has_vms = payload.get("virtual_machines") is not None
    vms = parse_vms(payload["virtual_machines"]) if has_vms else {}

    diff = payload.get("diff")
    if diff is None:
        if not has_vms:
            raise ValidationError("round payload needs virtual_machines or diff")
        return RoundInput(hosts=hosts, desired=vms)

    if not isinstance(diff, Mapping):
        raise ValidationError("diff must be an object")
    added: Dict[str, VirtualMachine] = {}
    for vm_id in _diff_ids(diff, "add"):
        vm = vms.get(vm_id)
        if vm is None:
            logger.warning(f"diff adds vm {vm_id} that is missing from virtual_machines; ignoring")
            continue
        added[vm_id] = vm
    removed = _diff_ids(diff, "remove")
    return RoundInput(hosts=hosts, desired=vms, is_diff=True, added=added, removed=removed)


def render_report(report: RoundReport) -> Dict[str, Any]:
    return {
        "round": report.round,
        "allocations": {host: list(vms) for host, vms in report.allocations.items()},
        "allocation_failures": list(report.allocation_failures),
        "migrations": [
            {"vm": m.vm, "from": m.source, "to": m.target}
            for m in report.migrations
        ],
        "host_utilizations": {
            host: {"usage_percentage": u.usage_percentage, "score": u.score}
            for host, u in report.host_utilizations.items()
        },
        "underutilized_hosts": list(report.underutilized_hosts),
    }
