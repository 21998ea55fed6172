import os

# データベース接続
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./actiontrack.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in {"1", "true", "yes", "on"}

# 認証 (JWT / bcrypt)
# 本番環境では必ず環境変数で SECRET_KEY を上書きしてください
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_key_change_me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(24 * 60)))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# 初期管理者アカウント (管理者が一人もいない場合のみ作成)
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

# 年度判定に使うタイムゾーン (IANA 名)
ACTION_TIMEZONE = os.getenv("ACTION_TIMEZONE", "UTC")

# サーバー (uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))

# CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5174")
CORS_ORIGINS = [
    FRONTEND_URL,
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:5174",
]

# レート制限 (クライアント IP ごとの固定ウィンドウ)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in {"1", "true", "yes", "on"}
RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000)))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))

# ログ
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "pretty")  # pretty | json

# 業務上の上限値
MAX_ACTIVE_USERS = 30
MIN_PASSWORD_LENGTH = 6
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 50
