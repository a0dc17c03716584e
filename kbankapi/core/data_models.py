"""Data models shared between the K PLUS client and the session coordinator."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class BankInfo(BaseModel):
    """Transfer metadata for a destination bank."""

    model_config = ConfigDict(extra="allow")

    bankCode: str
    transferType: str
    targetBankCode: str
    bankNameTh: Optional[str] = None
    bankNameEn: Optional[str] = None


class TransferHandle(BaseModel):
    """Opaque state captured by a transfer inquiry and replayed on confirmation.

    The client fills the handle in place while inquiring; callers keep the very
    same object and hand it back to ``transfer_money``.
    """

    kbankInternalSessionId: Optional[str] = None
    fromAccountNo: Optional[str] = None
    toAccountNo: Optional[str] = None
    amount: Optional[float] = None
    transferType: Optional[str] = None
    targetBankCode: Optional[str] = None
    inquiry: Dict[str, Any] = Field(default_factory=dict)
