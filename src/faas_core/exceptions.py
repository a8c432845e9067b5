"""faas-core exceptions."""


class FaasError(Exception):
    """Base exception for faas-core."""

    pass


class ConfigError(FaasError, ValueError):
    """Configuration is invalid or references something that does not exist."""

    pass


class ValidationError(FaasError, ValueError):
    """Request input is missing or malformed."""

    pass


class SessionError(FaasError):
    """The current session cannot serve the request."""

    pass


class NoActiveSessionError(SessionError):
    """No session exists, or it has no sandbox."""

    def __init__(self, message: str = "No active session. Please create a new session.") -> None:
        super().__init__(message)


class SessionExpiredError(SessionError):
    """The session's timeout has passed."""

    def __init__(self, message: str = "Session has expired. Please create a new session.") -> None:
        super().__init__(message)


class SessionPausedError(SessionError):
    """The session was snapshotted and must be resumed first."""

    def __init__(self, message: str = "Session is paused. Click 'Resume' to continue.") -> None:
        super().__init__(message)


class NoSnapshotError(SessionError):
    """Restore was requested but there is nothing to restore from."""

    def __init__(self, message: str = "No snapshot available to restore") -> None:
        super().__init__(message)


class NotFoundError(FaasError):
    """Resource not found."""

    pass


class SandboxError(FaasError):
    """Sandbox backend error."""

    pass


class SandboxNotFoundError(SandboxError, NotFoundError):
    """The sandbox no longer exists on the backend."""

    pass


class BuildError(FaasError):
    """Bundling user code failed."""

    pass


class DeploymentError(FaasError):
    """Deployment backend error."""

    pass


class DeploymentNotFoundError(DeploymentError, NotFoundError):
    """Deployment not found."""

    pass


class UploadError(DeploymentError):
    """Uploading a manifest file failed."""

    pass
