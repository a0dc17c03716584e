from __future__ import annotations

from fastapi import APIRouter

from ..dependencies import SessionDep
from ..schemas import ERROR_RESPONSES
from ..services import banking

router = APIRouter(tags=["account"], responses=ERROR_RESPONSES)


@router.get("/balance")
async def get_balance(session: SessionDep):
    return await banking.get_balance(session)


@router.get("/activities")
async def list_activities(session: SessionDep):
    """Activity list; every entry becomes available to /activity-detail by its rqUid."""
    return await banking.list_activities(session)


@router.get("/activity-detail/{rqUid}")
async def get_activity_detail(rqUid: str, session: SessionDep):
    return await banking.get_activity_detail(session, rqUid)
