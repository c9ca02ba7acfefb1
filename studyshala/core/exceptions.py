"""
Custom Exceptions for StudyShala
================================

Raise these from services and dependencies instead of HTTPException so the
same error carries a machine-readable code, an HTTP status and optional
details. The exception handler registered in main.py renders them as:

    {"detail": "<message>", "code": "<CODE>", "details": {...}}

Usage:
    from studyshala.core.exceptions import MaterialNotFoundError

    if not material:
        raise MaterialNotFoundError(material_id)
"""

from typing import Optional, Any, Dict, List


class StudyShalaError(Exception):
    """Base exception for all StudyShala errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details
        }


# ============================================
# Authentication Errors (401)
# ============================================

class AuthenticationError(StudyShalaError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(message, code=code)


class MissingTokenError(AuthenticationError):
    """No bearer token on the request"""

    def __init__(self):
        super().__init__("No token provided", code="NO_TOKEN")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token has expired", code="INVALID_OR_EXPIRED_TOKEN")
        self.details = {"reason": "expired"}


class InvalidTokenError(AuthenticationError):
    """JWT token is invalid"""

    def __init__(self):
        super().__init__("Invalid token", code="INVALID_OR_EXPIRED_TOKEN")
        self.details = {"reason": "invalid"}


class UserNotFoundForTokenError(AuthenticationError):
    """Token is valid but the user no longer exists"""

    def __init__(self):
        super().__init__("User not found", code="USER_NOT_FOUND")


# ============================================
# Authorization Errors (403)
# ============================================

class AuthorizationError(StudyShalaError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Access denied", code: str = "FORBIDDEN"):
        super().__init__(message, code=code)


class AccountDeactivatedError(AuthorizationError):
    """User account has been deactivated by an admin"""

    def __init__(self):
        super().__init__("Account has been deactivated", code="ACCOUNT_DEACTIVATED")


class AdminNotAllowedError(AuthorizationError):
    """Email is not on the admin allow-list"""

    def __init__(self, email: str = ""):
        super().__init__("Email is not authorized for admin access", code="NOT_ADMIN")
        if email:
            self.details = {"email": email}


class MaterialAccessDeniedError(AuthorizationError):
    """Student has neither saved nor redeemed the material"""

    def __init__(self):
        super().__init__("Access denied. Enter the access code first.", code="FORBIDDEN")


class ProtectedUserError(AuthorizationError):
    """Admins cannot be deactivated or removed"""

    def __init__(self, action: str):
        super().__init__(f"Cannot {action} an admin user", code="PROTECTED_USER")


# ============================================
# Resource Errors (404)
# ============================================

class ResourceNotFoundError(StudyShalaError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class MaterialNotFoundError(ResourceNotFoundError):
    """Material not found, inactive, or not owned by the caller"""

    def __init__(self, material_id: str):
        super().__init__("Material", material_id)


class MaterialFileNotFoundError(ResourceNotFoundError):
    """File not found in material"""

    def __init__(self, file_id: str, material_id: str = ""):
        super().__init__("File", file_id)
        self.details["material_id"] = material_id


class ContentNotAvailableError(StudyShalaError):
    """File record exists but has no remote content"""

    status_code = 404

    def __init__(self, file_id: str):
        super().__init__(
            "File content is not available",
            code="CONTENT_NOT_AVAILABLE",
            details={"file_id": file_id}
        )


# ============================================
# Validation Errors (400)
# ============================================

class ValidationError(StudyShalaError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, filename: str, allowed_types: List[str]):
        super().__init__(
            f"File type of '{filename}' not allowed. Allowed: {', '.join(allowed_types)}"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details = {"filename": filename, "allowed_types": allowed_types}


class FileTooLargeError(ValidationError):
    """Single file exceeds the upload size cap"""

    def __init__(self, filename: str, max_size: int):
        super().__init__(f"File '{filename}' exceeds the {max_size // (1024 * 1024)}MB limit")
        self.code = "FILE_TOO_LARGE"
        self.details = {"filename": filename, "max_size": max_size}


class TooManyFilesError(ValidationError):
    """Upload batch exceeds the file count cap"""

    def __init__(self, count: int, max_files: int):
        super().__init__(f"Too many files: {count} (max {max_files})")
        self.code = "TOO_MANY_FILES"
        self.details = {"count": count, "max_files": max_files}


# ============================================
# Server-side Errors (500 / 502 / 503)
# ============================================

class AccessCodeGenerationError(StudyShalaError):
    """Could not find a free access code within the allowed attempts"""

    def __init__(self, attempts: int):
        super().__init__(
            "Could not generate a unique access code",
            code="ACCESS_CODE_EXHAUSTED",
            details={"attempts": attempts},
            status_code=500,
        )


class DriveServiceError(StudyShalaError):
    """Google Drive operation failed"""

    status_code = 502

    def __init__(self, message: str, operation: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message, code="UPSTREAM_ERROR")
        self.upstream_status = upstream_status
        if operation:
            self.details["operation"] = operation


class OAuthNotConfiguredError(StudyShalaError):
    """Google OAuth credentials are missing"""

    status_code = 503

    def __init__(self):
        super().__init__("Google OAuth is not configured", code="OAUTH_NOT_CONFIGURED")
