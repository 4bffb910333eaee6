from pydantic import BaseModel
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    retryable: bool = False
    details: Optional[Any] = None
