"""
church_rbac.rbac.errors

Access control error taxonomy.

Responsibilities:
- Define one exception per failure class, each carrying its HTTP status and error code.
- Keep scope-revealing detail internal: context denials render exactly like role denials.
"""

from __future__ import annotations

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class AccessControlError(Exception):
    status_code: int = HTTP_400_BAD_REQUEST
    code: str = "error"
    public_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_payload(self) -> dict[str, object]:
        return {"success": False, "error": {"code": self.code, "message": self.message}}


class Unauthenticated(AccessControlError):
    status_code = HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    public_message = "Authentication required"


class InsufficientRole(AccessControlError):
    status_code = HTTP_403_FORBIDDEN
    code = "forbidden"
    public_message = "Insufficient role"

    def to_payload(self) -> dict[str, object]:
        # The internal message may name the missing level/scope; callers only see the generic one.
        return {"success": False, "error": {"code": self.code, "message": self.public_message}}


class ContextDenied(InsufficientRole):
    pass


class RoleValidationError(AccessControlError):
    status_code = HTTP_400_BAD_REQUEST
    code = "validation_error"
    public_message = "Invalid request"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.field is not None:
            payload["error"]["field"] = self.field  # type: ignore[index]
        return payload


class TargetNotFound(AccessControlError):
    status_code = HTTP_404_NOT_FOUND
    code = "target_not_found"
    public_message = "Member not found"


class ConcurrentRoleUpdate(AccessControlError):
    status_code = HTTP_409_CONFLICT
    code = "concurrent_update"
    public_message = "Member role was changed concurrently; retry"


class MemberRecordConflict(AccessControlError):
    status_code = HTTP_409_CONFLICT
    code = "member_conflict"
    public_message = "Email is already linked to another account"


class BackingStoreUnavailable(AccessControlError):
    status_code = HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    public_message = "Member store unavailable; try again"


# --- Module Notes -----------------------------------------------------------
# BackingStoreUnavailable must never be interpreted as a deny; the API renders it as 503.
