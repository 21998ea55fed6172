from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import config
from .database import get_session
from .errors import AuthenticationError, ForbiddenError
from .models import User

# パスワードハッシュ化の設定 (bcryptを使用)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)

# OAuth2 の設定 (トークン取得用URLを指定)
# auto_error=False にして、未認証時も共通のエラー形式で返します
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

# パスワードの検証
# 入力された平文パスワードと、保存されているハッシュ化パスワードが一致するか確認します
def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

# パスワードのハッシュ化
# 平文パスワードをハッシュ化して返します
def get_password_hash(password):
    return pwd_context.hash(password)

# アクセストークン (JWT) の作成
# sub にはユーザー ID を入れます (ユーザー名は管理者が変更できるため)
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta

    # 有効期限 (exp) をペイロードに追加
    to_encode.update({"exp": expire})

    # 秘密鍵を使って署名し、JWTを作成
    encoded_jwt = jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)
    return encoded_jwt

def create_token_for_user(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})

# 現在ログインしているユーザーを取得する依存関係関数
# エンドポイントの引数として使うことで、認証済みユーザーのみアクセス可能にします
async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), session: Session = Depends(get_session)):
    if not token:
        raise AuthenticationError("Access token required")
    try:
        # トークンをデコードして検証
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise AuthenticationError("Invalid token")
        user_id = int(subject)
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except (JWTError, ValueError):
        raise AuthenticationError("Invalid token")

    # ユーザー ID からデータベースを検索
    user = session.get(User, user_id)
    if user is None:
        raise AuthenticationError("Invalid token")
    # 無効化されたアカウントのトークンは使えません
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user

# 管理者権限を確認する依存関係関数
# get_current_user で取得したユーザーが管理者かどうかチェックします
async def get_current_admin(current_user: User = Depends(get_current_user)):
    if not current_user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return current_user
