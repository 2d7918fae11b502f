"""Errors raised by the Octopus REST client."""

from __future__ import annotations

from typing import List, Optional


class OctopusAPIError(RuntimeError):
    """Raised when the Octopus server rejects a request or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        self.status_code = status_code
        self.errors = errors or []
        detail = message
        if self.errors:
            detail = f"{message}: {'; '.join(self.errors)}"
        super().__init__(detail)


class ItemNotFoundError(OctopusAPIError):
    """Raised when the requested item does not exist (HTTP 404)."""

    pass
