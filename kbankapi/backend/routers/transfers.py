from __future__ import annotations

from fastapi import APIRouter, Form

from ..dependencies import SessionDep
from ..schemas import ERROR_RESPONSES, TransferInquiryRequest
from ..services import banking

router = APIRouter(tags=["transfers"], responses=ERROR_RESPONSES)


@router.get("/bank-info-list")
async def get_bank_info_list(session: SessionDep):
    return await banking.get_bank_info_list(session)


@router.post("/inquire-for-transfer-money")
async def inquire_for_transfer_money(
    session: SessionDep,
    amount: float = Form(..., ge=0.01, allow_inf_nan=False),
    toAccount: str = Form(..., min_length=1),
    toBankCode: str = Form(..., min_length=1),
):
    """Step one of a transfer. Confirm with /transfer-money78/{kbankInternalSessionId}."""
    req = TransferInquiryRequest(amount=amount, toAccount=toAccount, toBankCode=toBankCode)
    return await banking.inquire_transfer(session, req)


@router.post("/transfer-money78/{kbankInternalSessionId}")
async def transfer_money(kbankInternalSessionId: str, session: SessionDep):
    return await banking.confirm_transfer(session, kbankInternalSessionId)
