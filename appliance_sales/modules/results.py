from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import DomainError


@dataclass
class ActionResult:
    success: bool
    id: Optional[int] = None             # created/affected entity id (if any)
    message: Optional[str] = None        # user-facing message / failure reason
    error: Optional[DomainError] = None  # the business-rule failure, when success is False
    payload: Optional[dict] = None       # persisted entities (sale, lines, credit, ...)

    @classmethod
    def fail(cls, error: DomainError, id: Optional[int] = None) -> "ActionResult":
        return cls(success=False, id=id, message=str(error), error=error)

    @property
    def reason(self) -> Optional[str]:
        return None if self.success else self.message
