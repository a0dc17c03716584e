"""FastAPI dependencies exposing the per-process objects built at start-up."""
from __future__ import annotations

from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status

from kbankapi.core.session import Session


def get_session(request: Request) -> Session:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Banking session is not initialised.",
        )
    return session


def get_qr_decoder(request: Request) -> Callable[[bytes], str]:
    return request.app.state.qr_decoder


SessionDep = Annotated[Session, Depends(get_session)]
QRDecoderDep = Annotated[Callable[[bytes], str], Depends(get_qr_decoder)]
