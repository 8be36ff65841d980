"""Pydantic models for API request payloads."""

from pydantic import BaseModel, Field


class BulkLookupRequest(BaseModel):
    """Barcodes to resolve in one bulk call."""

    barcodes: list[str] = Field(default_factory=list, max_length=500)
