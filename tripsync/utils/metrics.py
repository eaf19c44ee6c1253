"""Prometheus metrics for the sync engine."""

from prometheus_client import Counter

propagations_total = Counter(
    "tripsync_propagations_total",
    "Destination propagations by target and action",
    ["source", "target", "action"],
)

sync_blocked_total = Counter(
    "tripsync_sync_blocked_total",
    "Propagations refused by user overrides or protected fields",
    ["target", "reason"],
)

targeting_results_total = Counter(
    "tripsync_targeting_results_total",
    "Chat instruction targeting outcomes",
    ["domain", "status"],
)

policy_skips_total = Counter(
    "tripsync_policy_skips_total",
    "Fields skipped by the conflict policy",
    ["store", "reason"],
)

snapshot_writes_total = Counter(
    "tripsync_snapshot_writes_total",
    "Snapshot writes by store and outcome",
    ["store", "outcome"],
)


class PrometheusSyncMetrics:
    """Prometheus-based sync metrics implementation."""

    def inc_propagation(self, source: str, target: str, action: str) -> None:
        """Record one propagation outcome."""
        propagations_total.labels(source=source, target=target, action=action).inc()

    def inc_blocked(self, target: str, reason: str) -> None:
        """Record a refused propagation."""
        sync_blocked_total.labels(target=target, reason=reason).inc()

    def inc_targeting(self, domain: str, status: str) -> None:
        """Record a chat targeting outcome."""
        targeting_results_total.labels(domain=domain, status=status).inc()

    def inc_policy_skip(self, store: str, reason: str, count: int = 1) -> None:
        """Record fields skipped by the policy."""
        if count > 0:
            policy_skips_total.labels(store=store, reason=reason).inc(count)

    def inc_snapshot_write(self, store: str, outcome: str) -> None:
        """Record a snapshot write."""
        snapshot_writes_total.labels(store=store, outcome=outcome).inc()


sync_metrics = PrometheusSyncMetrics()
