"""
Exceptions for external collaborator failures.

Like storage errors, each carries the HTTP status the API answers with.
The message shown to clients is generic; the detail is only logged.
"""


class DependencyError(Exception):
    """An external service call failed."""

    status_code = 500
    public_message = "An external service failed while processing the request."

    def __init__(self, service: str, cause: Exception | str):
        self.service = service
        self.cause = cause
        super().__init__(f"{service} failed: {cause}")


class DependencyTimeout(DependencyError):
    """An external service call did not finish in time."""

    status_code = 504
    public_message = "An external service timed out while processing the request."

    def __init__(self, service: str, timeout: float):
        self.timeout = timeout
        super().__init__(service, f"no response within {timeout:.1f}s")
