from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict

from kbankapi.core.correlation import CorrelationNotFound
from kbankapi.core.kplus_client import KPlusAPIError
from kbankapi.core.session import Session, UnknownBankCodeError

from ..errors import FieldValidationError, OperationFailed
from ..schemas import TransferInquiryRequest
from .qr import QRDecodeError

logger = logging.getLogger("kbankapi.backend.banking")

NOT_FOUND_MESSAGE = "ไม่พบข้อมูล"
BANK_NOT_FOUND_MESSAGE = "ไม่พบธนาคารปลายทาง"


@asynccontextmanager
async def operation_errors(action: str):
    """Turn any failure of a banking operation into an ``{"error": ...}`` response."""
    try:
        yield
    except FieldValidationError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.warning("%s failed: %s", action, exc, exc_info=not isinstance(exc, KPlusAPIError))
        raise OperationFailed(str(exc) or exc.__class__.__name__, cause=exc) from exc


async def get_balance(session: Session) -> Dict[str, Any]:
    async with operation_errors("Balance inquiry"):
        return await session.get_balance()


async def list_activities(session: Session) -> Dict[str, Any]:
    async with operation_errors("Activity list"):
        response = await session.list_activities()
    logger.info("Activity table holds %d entries", len(session.activities))
    return response


async def get_activity_detail(session: Session, rq_uid: str) -> Dict[str, Any]:
    async with operation_errors("Activity detail"):
        try:
            return await session.get_activity_detail(rq_uid)
        except CorrelationNotFound as exc:
            raise FieldValidationError.single("rqUid", NOT_FOUND_MESSAGE, rq_uid, "params") from exc


async def get_bank_info_list(session: Session) -> Dict[str, Dict[str, Any]]:
    async with operation_errors("Bank info list"):
        return await session.get_bank_info_list()


async def inquire_transfer(session: Session, req: TransferInquiryRequest) -> Dict[str, Any]:
    async with operation_errors("Transfer inquiry"):
        try:
            response = await session.inquire_transfer(req.toAccount, req.amount, req.toBankCode)
        except UnknownBankCodeError as exc:
            raise FieldValidationError.single("toBankCode", BANK_NOT_FOUND_MESSAGE, req.toBankCode) from exc

    logger.info(
        "Transfer inquiry: to=%s bank=%s amount=%.2f kbankInternalSessionId=%s",
        req.toAccount,
        req.toBankCode,
        req.amount,
        response.get("kbankInternalSessionId"),
    )
    return response


async def confirm_transfer(session: Session, kbank_internal_session_id: str) -> Dict[str, Any]:
    async with operation_errors("Transfer confirmation"):
        try:
            response = await session.confirm_transfer(kbank_internal_session_id)
        except CorrelationNotFound as exc:
            raise FieldValidationError.single(
                "kbankInternalSessionId", NOT_FOUND_MESSAGE, kbank_internal_session_id, "params"
            ) from exc

    logger.info("Transfer %s confirmed", kbank_internal_session_id)
    return response


async def scan_qr(session: Session, payload: str) -> Dict[str, Any]:
    async with operation_errors("QR scan"):
        return await session.scan_qr(payload)


async def scan_qr_image(session: Session, data: bytes, decoder: Callable[[bytes], str]) -> Dict[str, Any]:
    try:
        payload = await asyncio.to_thread(decoder, data)
    except QRDecodeError as exc:
        raise FieldValidationError.single("image", str(exc)) from exc
    return await scan_qr(session, payload)
