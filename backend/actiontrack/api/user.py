from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import action_plans, actions
from ..auth import get_current_user
from ..database import get_session
from ..models import User
from ..schemas import ActionPayload, envelope
from ..time_window import Clock, get_clock, year_of

router = APIRouter(prefix="/api/user", tags=["user"])


@router.post("/actions", status_code=201)
def create_action(
    body: ActionPayload,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    action = actions.create_action(session, current_user.id, body.data, now)
    return envelope({"action": actions.serialize_action(action, now)}, message="Action created successfully")


@router.get("/actions")
def list_actions(
    year: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    year_filter = actions.parse_year(year)
    result = actions.list_actions(session, current_user.id, year=year_filter, page=page, limit=limit)
    return envelope(
        {
            "actions": [actions.serialize_action(action, now) for action in result.items],
            "pagination": result.describe("totalActions"),
            "filter": {"year": year_filter, "currentYear": year_of(now)},
        }
    )


# /actions/{action_id} より先に登録すること
@router.get("/actions/stats")
def action_stats(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return envelope(actions.action_stats(session, current_user.id, clock()))


@router.get("/actions/{action_id}")
def get_action(
    action_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    action = actions.get_owned_action(session, current_user.id, action_id)
    return envelope({"action": actions.serialize_action(action, clock())})


@router.put("/actions/{action_id}")
def update_action(
    action_id: int,
    body: ActionPayload,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    action = actions.update_action(session, current_user.id, action_id, body.data, now)
    return envelope({"action": actions.serialize_action(action, now)}, message="Action updated successfully")


@router.delete("/actions/{action_id}")
def delete_action(
    action_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    actions.delete_action(session, current_user.id, action_id, clock())
    return envelope(message="Action deleted successfully")


@router.get("/action-plans")
def my_action_plans(current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    plans = action_plans.list_plans_for_user(session, current_user, current_user.id)
    return envelope({"actionPlans": [action_plans.serialize_plan(session, plan) for plan in plans]})
