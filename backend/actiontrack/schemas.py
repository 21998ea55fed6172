"""Request bodies accepted by the API (camelCase on the wire)."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    username: str = ""
    password: str = ""


class ActionPayload(CamelModel):
    # Opaque JSON; presence is checked by the action store so a missing value
    # gets the same error as an explicit null.
    data: Any = None


class UserCreate(CamelModel):
    username: str = ""
    password: str = ""
    role: Optional[str] = None


class UserUpdate(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class ActionPlanCreate(CamelModel):
    title: Optional[str] = None
    description: Any = None
    user_ids: Optional[List[int]] = None


class ActionPlanUpdate(CamelModel):
    title: Optional[str] = None
    description: Any = None
    user_ids: Optional[List[int]] = None


def envelope(data: Optional[dict] = None, message: Optional[str] = None) -> dict:
    """Success body shared by every endpoint."""
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
