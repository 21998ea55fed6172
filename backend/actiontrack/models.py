from enum import Enum
from typing import Any, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel, Column, JSON

from .time_window import system_clock, to_storage


def utc_now() -> datetime:
    # 保存用の時刻 (タイムゾーン付き UTC)
    return to_storage(system_clock())


# ロール (一般ユーザー / 管理者 の二値のみ)
class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


# ユーザーモデル
# データベースの 'user' テーブルに対応します
class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True) # 主キー (自動採番)
    username: str = Field(index=True, unique=True) # ユーザー名 (小文字・前後空白除去済み、重複不可)
    hashed_password: str # ハッシュ化されたパスワード (平文では保存しません)
    role: Role = Field(default=Role.USER) # ロール
    is_active: bool = Field(default=True, index=True) # 有効フラグ (論理削除で False)
    created_at: datetime = Field(default_factory=utc_now) # 作成日時 (自動設定)
    last_login: Optional[datetime] = None # 最終ログイン日時

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# アクションモデル
# ユーザーが記録する任意の JSON データ。作成年のみ編集・削除できます
class Action(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True) # 所有者
    data: Any = Field(sa_column=Column(JSON, nullable=False)) # 任意の JSON (構造は呼び出し側が決めます)
    created_at: datetime = Field(default_factory=utc_now, index=True) # 作成日時 (挿入後は変更しません)
    updated_at: datetime = Field(default_factory=utc_now) # 最終更新日時


# アクションプランモデル
# 管理者が作成し、対象ユーザーに配信します
class ActionPlan(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Any = Field(sa_column=Column(JSON, nullable=False)) # 文字列または JSON
    created_by: Optional[int] = Field(default=None, foreign_key="user.id") # 作成した管理者 (完全削除されると None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# アクションプランの対象ユーザー (順序付き)
# ユーザーへの弱い参照です。ユーザーを削除してもプラン自体は残ります
class ActionPlanAssignment(SQLModel, table=True):
    plan_id: int = Field(foreign_key="actionplan.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True, index=True)
    position: int = Field(default=0) # 配信先リスト内の順番
