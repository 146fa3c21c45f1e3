"""Prometheus metrics for monitoring charges, split integrity, payouts and processor performance"""

from prometheus_client import Counter, Histogram

# Charge metrics
charge_counter = Counter(
    "vedi_charges_total",
    "Charge creation attempts",
    ["outcome"],  # created | rejected | integrity_error | processor_error
)

split_integrity_failure_counter = Counter(
    "vedi_split_integrity_failures_total",
    "Splits whose parts did not reconstruct the gross amount",
)

charge_amount_bucket_counter = Counter(
    "vedi_charge_amount_bucket",
    "Created charges by gross amount bucket",
    ["bucket"],  # <$10, $10-$50, $50-$200, $200+
)

# Settlement metrics
transfer_counter = Counter(
    "vedi_transfers_total",
    "Payout attempts by destination role and status",
    ["role", "status"],  # restaurant | venue; succeeded | failed
)

settlement_counter = Counter(
    "vedi_settlements_total",
    "Settlement outcomes",
    ["outcome"],  # success | partial_failure | replayed | retry
)

# Processor metrics
processor_latency_histogram = Histogram(
    "processor_latency_seconds",
    "Payment processor response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

processor_failure_counter = Counter(
    "processor_failures_total",
    "Failed payment processor calls",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_charge(gross_cents: int) -> None:
    """Record a created charge and bucket its size for distribution analysis"""
    charge_counter.labels(outcome="created").inc()

    if gross_cents < 1_000:
        bucket = "<$10"
    elif gross_cents < 5_000:
        bucket = "$10-$50"
    elif gross_cents < 20_000:
        bucket = "$50-$200"
    else:
        bucket = "$200+"

    charge_amount_bucket_counter.labels(bucket=bucket).inc()


def record_settlement(transfers, replayed: bool) -> None:
    """Record per-transfer outcomes of a first settlement, or a replay"""
    if replayed:
        settlement_counter.labels(outcome="replayed").inc()
        return

    for transfer in transfers:
        transfer_counter.labels(role=transfer.role, status=transfer.status).inc()

    failed = any(t.status != "succeeded" for t in transfers)
    settlement_counter.labels(outcome="partial_failure" if failed else "success").inc()
