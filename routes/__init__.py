from . import (
    assignments,
    auth,
    job_workers,
)

__all__ = [
    "assignments",
    "auth",
    "job_workers",
]
