from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..auth import create_token_for_user, get_current_user
from ..database import get_session
from ..models import User
from ..schemas import LoginRequest, envelope
from ..time_window import Clock, get_clock
from ..users import authenticate, serialize_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
def login(body: LoginRequest, session: Session = Depends(get_session), clock: Clock = Depends(get_clock)):
    user = authenticate(session, body.username, body.password, clock())
    return envelope(
        {"token": create_token_for_user(user), "user": serialize_user(user)},
        message="Login successful",
    )


@router.get("/profile")
def profile(current_user: User = Depends(get_current_user)):
    return envelope({"user": serialize_user(current_user)})


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    # トークンはステートレスなので、クライアント側で破棄するだけです
    return envelope(message="Logout successful")
