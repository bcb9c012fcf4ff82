"""
Error envelope models, used to document the 4xx/5xx responses in OpenAPI.
"""
from typing import Any, Optional
from pydantic import BaseModel


class FieldError(BaseModel):
    """One entry of `details.errors` on a VALIDATION_ERROR response."""
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    """`{code, message, details}` returned for every error."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


NOT_FOUND = {404: {"model": ErrorResponse, "description": "Unknown or retired resource."}}
UNAUTHORIZED = {401: {"model": ErrorResponse, "description": "Missing or invalid store token."}}
