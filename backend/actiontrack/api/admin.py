from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .. import action_plans, users
from ..auth import get_current_admin
from ..database import get_session
from ..models import User
from ..schemas import ActionPlanCreate, ActionPlanUpdate, UserCreate, UserUpdate, envelope
from ..time_window import Clock, get_clock

# すべてのエンドポイントで管理者権限が必要です
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])


@router.post("/users", status_code=201)
def create_user(body: UserCreate, session: Session = Depends(get_session)):
    user = users.create_user(session, body.username, body.password, body.role)
    return envelope({"user": users.serialize_user(user)}, message="User created successfully")


@router.get("/users")
def list_users(session: Session = Depends(get_session)):
    all_users = users.list_users(session)
    return envelope(
        {
            "users": [users.serialize_user(user) for user in all_users],
            "totalUsers": len(all_users),
            "activeUsers": sum(1 for user in all_users if user.is_active),
        }
    )


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    user = users.update_user(
        session,
        admin,
        user_id,
        username=body.username,
        password=body.password,
        role=body.role,
        is_active=body.is_active,
    )
    return envelope({"user": users.serialize_user(user)}, message="User updated successfully")


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    permanent: bool = Query(False),
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    message = users.delete_user(session, admin, user_id, permanent=permanent)
    return envelope(message=message)


@router.get("/users/{user_id}/action-plans")
def user_action_plans(
    user_id: int,
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    users.get_user(session, user_id)
    plans = action_plans.list_plans_for_user(session, admin, user_id)
    return envelope({"actionPlans": [action_plans.serialize_plan(session, plan) for plan in plans]})


@router.get("/stats")
def stats(session: Session = Depends(get_session), clock: Clock = Depends(get_clock)):
    return envelope(users.user_stats(session, clock()))


@router.post("/action-plans", status_code=201)
def create_action_plan(
    body: ActionPlanCreate,
    admin: User = Depends(get_current_admin),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    plan = action_plans.create_plan(session, admin, body.title, body.description, body.user_ids, clock())
    return envelope(
        {"actionPlan": action_plans.serialize_plan(session, plan)},
        message="Action plan created successfully",
    )


@router.get("/action-plans")
def list_action_plans(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    session: Session = Depends(get_session),
):
    result = action_plans.list_plans(session, page=page, limit=limit)
    return envelope(
        {
            "actionPlans": [action_plans.serialize_plan(session, plan) for plan in result.items],
            "pagination": result.describe("totalActionPlans"),
        }
    )


@router.get("/action-plans/{plan_id}")
def get_action_plan(plan_id: int, session: Session = Depends(get_session)):
    plan = action_plans.get_plan(session, plan_id)
    return envelope({"actionPlan": action_plans.serialize_plan(session, plan)})


@router.put("/action-plans/{plan_id}")
def update_action_plan(
    plan_id: int,
    body: ActionPlanUpdate,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    plan = action_plans.update_plan(
        session,
        plan_id,
        clock(),
        title=body.title,
        description=body.description,
        user_ids=body.user_ids,
    )
    return envelope(
        {"actionPlan": action_plans.serialize_plan(session, plan)},
        message="Action plan updated successfully",
    )


@router.delete("/action-plans/{plan_id}")
def delete_action_plan(plan_id: int, session: Session = Depends(get_session)):
    action_plans.delete_plan(session, plan_id)
    return envelope(message="Action plan deleted successfully")
