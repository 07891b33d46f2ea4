from __future__ import annotations

# Orders and weekly reports share the same one-shot approval lifecycle:
#   PENDING -> APPROVED | REJECTED   (terminal, set by an administrator)
STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"

VALID_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED}
DECISION_STATUSES = {STATUS_APPROVED, STATUS_REJECTED}
