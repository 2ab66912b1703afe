from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True, slots=True)
class ByteRange:
    block: int
    start: int
    end: int                   # inclusive

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class PartialHTTPError(IOError):
    """Base class for every error raised by partialhttp."""
    pass


class ProbeError(PartialHTTPError):
    """Raised when the HEAD probe fails or returns an unusable response."""
    pass


class ResourceNotFoundError(ProbeError):
    """Raised when the probed resource does not exist (HTTP 404)."""
    pass


class FetchError(PartialHTTPError):
    """Raised when a range GET fails or a body does not match its range."""
    pass


class IncompleteFetchError(FetchError):
    """Raised when a response satisfies fewer ranges than were requested."""

    def __init__(self, message: str, missing: Sequence[ByteRange] = ()):
        super().__init__(message)
        self.missing = tuple(missing)


class ParseError(PartialHTTPError):
    """Raised when a Content-Type or multipart/byteranges body is malformed."""
    pass


class MissingBlockError(PartialHTTPError):
    """Raised when a block needed for the copy phase is not in the cache."""
    pass
