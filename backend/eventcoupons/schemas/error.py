from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error envelope shared by every endpoint; ``fields`` carries per-field coupon errors."""

    detail: Any
    code: str | None = None
    fields: dict[str, list[str]] | None = None
