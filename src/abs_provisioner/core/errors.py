"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
ValidationError should block before any network call is made.
NotProvisionable means the hosts will never show up, so polling stops.
PollTimeout means we gave up waiting, the job may still be running remotely.

Every error carries a stable kind string. The task runner reports it in the
structured error payload.
"""


class ProvisionerError(Exception):
    """Base class for all provisioner exceptions."""

    kind = "provisioner_error"


class ValidationError(ProvisionerError):
    """Raised when caller arguments are malformed or contradictory."""

    kind = "validation_error"


class TransportError(ProvisionerError):
    """Raised when ABS answers with an unexpected status or cannot be reached."""

    kind = "transport_error"

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class NotProvisionable(ProvisionerError):
    """Raised when ABS answers 404 while polling. The hosts will never be available."""

    kind = "not_provisionable"


class PollTimeout(ProvisionerError):
    """Raised when the poll deadline passes without a 200 reply."""

    kind = "timeout"

    def __init__(self, timeout_seconds: int) -> None:
        super().__init__(f"Timeout: unable to get a 200 response in {timeout_seconds} seconds")
        self.timeout_seconds = timeout_seconds


class NodeLookupError(ProvisionerError):
    """Raised when a teardown target is absent from an existing inventory."""

    kind = "lookup_error"


class CredentialError(ProvisionerError):
    """Raised when no ABS token can be found."""

    kind = "credential_error"
