"""
Helpers shared by the API routes
"""
from fastapi import HTTPException

from ..exceptions import ExternalServiceError, GovFlowError


def to_http_exception(error: GovFlowError) -> HTTPException:
    """Translate an engine error into the HTTP response it maps to"""
    headers = None
    if isinstance(error, ExternalServiceError):
        headers = {"Retry-After": "5"}
    return HTTPException(status_code=error.status_code, detail=error.to_detail(), headers=headers)
