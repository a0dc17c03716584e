from __future__ import annotations

from fastapi import APIRouter, File, UploadFile

from ..dependencies import QRDecoderDep, SessionDep
from ..schemas import ERROR_RESPONSES
from ..services import banking

router = APIRouter(tags=["qr"], responses=ERROR_RESPONSES)


@router.post("/scan-qrcode/{raw}")
async def scan_qr_payload(raw: str, session: SessionDep):
    return await banking.scan_qr(session, raw)


@router.post("/scan-qrcode")
async def scan_qr_image(session: SessionDep, decoder: QRDecoderDep, image: UploadFile = File(...)):
    data = await image.read()
    return await banking.scan_qr_image(session, data, decoder)
