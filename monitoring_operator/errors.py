"""Error taxonomy for the operator."""


class OperatorError(Exception):
    """Base class for all operator errors."""


class ClusterError(OperatorError):
    """A transient failure talking to the cluster API."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class NotFoundError(ClusterError):
    """The requested object does not exist."""

    def __init__(self, message: str):
        super().__init__(message, status=404)


class ConflictError(ClusterError):
    """An optimistic-concurrency conflict on write."""

    def __init__(self, message: str):
        super().__init__(message, status=409)


class SpecError(OperatorError):
    """The instance spec is malformed or cannot be rendered."""


class CredentialError(OperatorError):
    """A credential could not be generated."""


class ReadinessTimeout(OperatorError):
    """The readiness gate deadline elapsed before the target was satisfied."""

    def __init__(self, message: str, reason: str = ""):
        super().__init__(message)
        self.reason = reason


class StartupError(OperatorError):
    """A non-recoverable error during process start."""


class ConfigurationError(StartupError):
    """Process configuration or operator settings are missing or malformed."""


class CertificateError(StartupError):
    """Webhook TLS material could not be provisioned."""
