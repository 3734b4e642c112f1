"""
MUSISCORE - API Schemas
Pydantic models for the job triggers and health endpoints.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel


class JobResponse(BaseModel):
    success: bool
    message: str


class ErrorResponse(BaseModel):
    error: str


class ComponentHealth(BaseModel):
    name: str
    status: str  # healthy, unhealthy
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    last_check: datetime


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    uptime_seconds: float
    components: Dict[str, ComponentHealth]
