"""
MUSISCORE - Job Summary

What a job run reports back to its trigger (HTTP, scheduler or CLI).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class JobSummary:
    job: str
    success: bool
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def completed(cls, job: str, message: str, **details: Any) -> "JobSummary":
        return cls(job=job, success=True, message=message, details=details)

    @classmethod
    def skipped(cls, job: str, message: str) -> "JobSummary":
        """Nothing to do (no season, no snapshots). Not an error."""
        return cls(job=job, success=False, message=message)

    @classmethod
    def failed(cls, job: str, error: str) -> "JobSummary":
        return cls(job=job, success=False, error=error)

    @property
    def status_code(self) -> int:
        return 500 if self.error is not None else 200

    def to_payload(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {"success": self.success, "message": self.message}
