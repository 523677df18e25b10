"""Health check response model."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    storage: str
