from __future__ import annotations

from typing import Any, Dict, Literal, Union

from pydantic import BaseModel


class FieldError(BaseModel):
    type: Literal["field"] = "field"
    value: Any = None
    msg: str
    path: str
    location: str


class ErrorResponse(BaseModel):
    error: str


class TransferInquiryRequest(BaseModel):
    amount: float
    toAccount: str
    toBankCode: str


ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {
        "model": ErrorResponse,
        "description": "Banking operation failed (error) or input rejected (errors)",
    },
}
