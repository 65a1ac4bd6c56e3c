"""
Error taxonomy and explicit result types for the retrieval pipeline.

Components raise these errors internally and hand back ``Ok`` / ``Err``
values at the seams where a failure must degrade rather than abort:
store search and upsert, page extraction, per-chunk embedding and the
reranking call. Only ``InvalidQueryError`` is meant to reach the caller.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    kind: str = "pipeline"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmbeddingServiceError(PipelineError):
    """Upstream embedding call failed."""

    kind = "embedding"


class SearchUnavailable(PipelineError):
    """Vector store query or write failed."""

    kind = "search"


class ExtractionError(PipelineError):
    """Page fetch or content derivation failed."""

    kind = "extraction"

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RerankingUnavailable(PipelineError):
    """Ranking call failed or returned nothing usable."""

    kind = "reranking"


class InvalidQueryError(PipelineError):
    """Malformed caller input, e.g. empty query text."""

    kind = "invalid_query"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: PipelineError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        return self.error.kind


Result = Union[Ok[T], Err]


def capture(fn: Callable[..., Any], *args, **kwargs) -> Result:
    """Call ``fn`` and wrap its return value, or a raised PipelineError, in a Result."""
    try:
        return Ok(fn(*args, **kwargs))
    except PipelineError as e:
        return Err(e)
