"""Operation result values.

An operation handler returns either :class:`Success` or :class:`Failure`,
never both and never an exception.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.responses.builders import success_response
from discord_mcp.core.responses.types import ToolResponse


@dataclass(frozen=True)
class Success:
    """Successful operation outcome."""

    data: Dict[str, Any] = field(default_factory=dict)
    summary: str = ""
    warnings: Optional[tuple] = None

    ok = True

    def to_response(self) -> ToolResponse:
        return success_response(
            self.data,
            summary=self.summary,
            warnings=list(self.warnings) if self.warnings else None,
        )


@dataclass(frozen=True)
class Failure:
    """Failed operation outcome."""

    error: DomainError
    summary: Optional[str] = None

    ok = False

    def to_response(self) -> ToolResponse:
        return self.error.to_response(summary=self.summary)


OperationResult = Union[Success, Failure]
