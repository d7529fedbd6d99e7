"""
OTP Metrics
===========
Prometheus counters for issuance, verification and expiry sweeps.
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest

OTP_REGISTRY = CollectorRegistry()

OTP_ISSUED = Counter(
    name="otp_issued_total",
    documentation="OTP issuance attempts by kind and final delivery status",
    labelnames=["kind", "status"],
    registry=OTP_REGISTRY,
)

OTP_VERIFICATIONS = Counter(
    name="otp_verifications_total",
    documentation="OTP verification attempts by outcome",
    labelnames=["outcome"],
    registry=OTP_REGISTRY,
)

OTP_SWEPT = Counter(
    name="otp_records_swept_total",
    documentation="Expired OTP records deleted by the reaper",
    registry=OTP_REGISTRY,
)


def record_issued(kind: str, status: str) -> None:
    OTP_ISSUED.labels(kind=kind, status=status).inc()


def record_verification(outcome: str) -> None:
    OTP_VERIFICATIONS.labels(outcome=outcome).inc()


def record_swept(count: int) -> None:
    if count > 0:
        OTP_SWEPT.inc(count)


def get_metrics_text() -> bytes:
    """Export OTP metrics in Prometheus text format."""
    return generate_latest(OTP_REGISTRY)
