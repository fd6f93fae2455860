"""Background job processing."""

from restyle.workers.design_jobs import DesignJobOrchestrator, JobFailure

__all__ = [
    "DesignJobOrchestrator",
    "JobFailure",
]
