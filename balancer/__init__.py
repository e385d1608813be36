"""
VM balancer package.

Modules:
- state: hosts, VM requests, migrations and round reports
- ledger: capacity ledger and VM -> host assignment
- scoring: utilization quality score
- policy: placement strategies and the rebalance planner
- reconciler: round-to-round reconciliation loop
- protocol: round payload validation and report rendering
- driver: file polling and stdin drivers
- api: REST surface for rounds and snapshots
"""

__version__ = "0.3.0"
