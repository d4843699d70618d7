class KitAuthException(Exception):
    def __init__(self, error: str, error_description: str | None = None) -> None:
        super().__init__(error_description or error)
        self.error = error
        self.error_description = error_description


class AuthenticationError(KitAuthException):
    def __init__(self) -> None:
        super().__init__("authentication_required", "Authentication required")


class MultiFactorAuthError(KitAuthException):
    def __init__(self) -> None:
        super().__init__(
            "mfa_required", "Multi-factor authentication required"
        )


class MFACheckError(KitAuthException):
    """Raised when the identity backend cannot report assurance levels."""

    def __init__(self, error_description: str | None = None) -> None:
        super().__init__(
            "mfa_check_failed",
            error_description or "Failed to check multi-factor requirements",
        )


class SessionContextWarning(UserWarning):
    """Emitted by identity adapters queried without an active session."""
