from throttle.service_types import ErrorKind


class RemoteCallError(Exception):
    """
    Raised by adapters when a remote call fails.

    kind tells the throttle whether the failure is a transient capacity
    problem, an inherently invalid request, or something else entirely.
    """

    def __init__(self, kind, message="", cause=None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.cause = cause


class ThrottleCancelled(Exception):
    """A throttle sleep was interrupted by a cancellation signal."""


def default_classifier(exc):
    if isinstance(exc, RemoteCallError):
        return exc.kind
    return ErrorKind.OTHER
