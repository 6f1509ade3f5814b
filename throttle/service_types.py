from enum import Enum


class ServiceType(str, Enum):
    """Which external quota a throttle instance governs."""

    AZURE_FACE = "AzureFace"
    GEMINI = "Gemini"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, name):
        """Look up by value or member name, case-insensitively."""
        for member in cls:
            if name.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown service type: {name}")


class ErrorKind(Enum):
    """Classification signal produced by a remote-call adapter."""

    RATE_LIMITED = "rate_limited"
    STRUCTURAL_INVALID = "structural_invalid"
    OTHER = "other"
