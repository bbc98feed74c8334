# Kanuka: envelope-encrypted secrets for teams

from kanuka.common.exceptions import (
    AccessDeniedError,
    DecryptionError,
    FileAccessError,
    FormatError,
    KanukaError,
    NotFoundError,
    ValidationError,
)
from kanuka.secrets.access import resolve_access_state
from kanuka.secrets.envelope import unwrap_secret_for_caller, wrap_secret_for_user
from kanuka.secrets.planner import apply_plan, plan_operation, run_operation
from kanuka.secrets.status import file_status

__all__ = [
    "AccessDeniedError",
    "DecryptionError",
    "FileAccessError",
    "FormatError",
    "KanukaError",
    "NotFoundError",
    "ValidationError",
    "apply_plan",
    "file_status",
    "plan_operation",
    "resolve_access_state",
    "run_operation",
    "unwrap_secret_for_caller",
    "wrap_secret_for_user",
]
