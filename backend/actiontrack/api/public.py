from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import public
from ..database import get_session
from ..schemas import envelope
from ..time_window import Clock, get_clock

# 認証不要。アクションの一部の項目だけを公開します
router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/actions/overview")
def actions_overview(
    limit: Optional[int] = Query(None),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return envelope(public.overview(session, clock(), limit))


@router.get("/stats")
def stats(session: Session = Depends(get_session), clock: Clock = Depends(get_clock)):
    return envelope(public.system_stats(session, clock()))
