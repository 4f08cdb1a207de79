"""Prometheus metrics for the document vault.

Defines and exposes operational metrics for monitoring and alerting.
Exposed on GET /metrics (observability.router).
"""

from prometheus_client import Counter

# Presigned URL metrics
upload_urls_issued_total = Counter(
    "clinic_vault_upload_urls_issued_total",
    "Total presigned upload URLs issued",
    ["backend"]  # backend: s3|mock
)

download_urls_issued_total = Counter(
    "clinic_vault_download_urls_issued_total",
    "Total presigned download URLs issued",
    ["backend"]
)

upload_requests_rejected_total = Counter(
    "clinic_vault_upload_requests_rejected_total",
    "Upload URL requests rejected by the declared-type/size check",
    ["reason"]  # reason: validation|storage
)

# Content sniff metrics
content_checks_total = Counter(
    "clinic_vault_content_checks_total",
    "Post-upload content sniff outcomes",
    ["verdict"]  # verdict: MATCH|TEXT_FALLBACK|MISMATCH|UNDETECTABLE
)

# Access policy metrics
access_decisions_total = Counter(
    "clinic_vault_access_decisions_total",
    "Access policy decisions",
    ["role", "action", "decision"]
)
