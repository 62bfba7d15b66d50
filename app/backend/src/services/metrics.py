"""Prometheus metric definitions for memorial operations."""

from __future__ import annotations

from prometheus_client import Counter

memorial_operations_total = Counter(
    "memorial_operations_total",
    "Total memorial record operations by outcome.",
    labelnames=["operation", "outcome"],
)

memorial_blobs_deleted_total = Counter(
    "memorial_blobs_deleted_total",
    "Images removed from object storage during update or delete.",
)

memorial_blob_delete_failures_total = Counter(
    "memorial_blob_delete_failures_total",
    "Image deletions that object storage reported as failed.",
)

upload_urls_issued_total = Counter(
    "upload_urls_issued_total",
    "Presigned upload URLs handed out to clients.",
)

__all__ = [
    "memorial_operations_total",
    "memorial_blobs_deleted_total",
    "memorial_blob_delete_failures_total",
    "upload_urls_issued_total",
]
