"""
Exception classes for hnssec.

Every error carries a short code and a message. Input validation errors stop a
run before anything is written; the stage errors are caught at the per-domain
boundary by the pipeline.
"""

from typing import Optional


class HnssecError(Exception):
    """Base exception for all hnssec errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(HnssecError):
    """Raised when run options are missing or malformed."""

    pass


class KeyMaterialError(HnssecError):
    """Raised when DNSSEC keys cannot be generated, written or decoded."""

    pass


class CertificateError(HnssecError):
    """Raised when the self-signed certificate cannot be built or signed."""

    pass


class ZoneAssemblyError(HnssecError):
    """Raised when the unsigned record set cannot be built."""

    pass


class SigningError(HnssecError):
    """Raised when an RRset cannot be signed (e.g. no DNSKEY RRset at the apex)."""

    pass


class TemplateError(HnssecError):
    """Raised when a summary template or config file cannot be read."""

    pass


class ArchiveError(HnssecError):
    """Raised when writing a backup archive fails."""

    pass
