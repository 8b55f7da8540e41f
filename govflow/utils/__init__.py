"""
Utility functions for the GovFlow eligibility and form workflow engine
"""

from .validators import (
    is_empty,
    validate_field,
    compute_content_hash,
    build_idempotency_key,
    generate_session_id
)

__all__ = [
    "is_empty",
    "validate_field",
    "compute_content_hash",
    "build_idempotency_key",
    "generate_session_id"
]
