"""Job worker registry and assignment ledger."""

from .errors import (
    BusinessRuleError,
    ConflictError,
    JobWorkerError,
    JobWorkerValidationError,
    NotFoundError,
    UnauthenticatedError,
    UnauthorizedError,
)
from .workers import (
    count_open_assignments,
    create_worker,
    delete_worker,
    get_next_worker_code,
    get_worker,
    list_workers,
    update_worker,
)
from .assignments import (
    add_material,
    create_assignment,
    get_assignment,
    get_next_assignment_number,
    list_assignments,
    list_assignments_by_worker,
    update_assignment,
    update_material_tracking,
    update_status,
)
from .reports import (
    get_assignment_with_summary,
    get_worker_with_summary,
    material_tracking_report,
    summarize_materials,
)
from .status import apply_transition
from .tracking import compute_payment, recompute_material

__all__ = [
    "BusinessRuleError",
    "ConflictError",
    "JobWorkerError",
    "JobWorkerValidationError",
    "NotFoundError",
    "UnauthenticatedError",
    "UnauthorizedError",
    "count_open_assignments",
    "create_worker",
    "delete_worker",
    "get_next_worker_code",
    "get_worker",
    "list_workers",
    "update_worker",
    "add_material",
    "create_assignment",
    "get_assignment",
    "get_next_assignment_number",
    "list_assignments",
    "list_assignments_by_worker",
    "update_assignment",
    "update_material_tracking",
    "update_status",
    "get_assignment_with_summary",
    "get_worker_with_summary",
    "material_tracking_report",
    "summarize_materials",
    "apply_transition",
    "compute_payment",
    "recompute_material",
]
