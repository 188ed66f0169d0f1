"""Exceptions raised by AggForge itself.

provider errors (duckdb, the search transport) are deliberately not wrapped -
they reach the caller exactly as the backend raised them.
"""


class AggForgeError(Exception):
    """Base class for errors raised by this package."""


class RejectedInputError(AggForgeError):
    """A free-text identifier contained a disallowed sql keyword.

    not a ValueError on purpose, so pydantic validators let it through
    unwrapped instead of folding it into a ValidationError.
    """

    def __init__(self, source: str, keyword: str) -> None:
        super().__init__(f"Input rejected, contains illegal keyword '{keyword.strip()}'")
        self.source = source
        self.keyword = keyword


class CapabilityNotImplementedError(AggForgeError, NotImplementedError):
    """An optional operation was called on something that doesn't offer it.

    callers should read this as "feature unavailable", not as a crash.
    """
