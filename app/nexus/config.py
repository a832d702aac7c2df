import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    jwt_secret: str
    env: str
    database_url: str
    db_pool_size: int
    db_max_overflow: int
    log_level: str

    auth_cookie_name: str
    auth_token_ttl: str
    remember_me_ttl: str

    otp_expiration_minutes: int
    otp_length: int
    otp_max_attempts: int

    backup_cron_token: str
    csrf_enabled: bool

    login_rate_limit: int
    otp_rate_limit: int
    rate_limit_window: int
    trusted_proxies: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///lpg_nexus.db"),
        db_pool_size=_getint("DB_POOL_SIZE", 5),
        db_max_overflow=_getint("DB_MAX_OVERFLOW", 10),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        auth_cookie_name=_getenv("AUTH_COOKIE_NAME", "token"),
        auth_token_ttl=_getenv("AUTH_TOKEN_TTL", "24h"),
        remember_me_ttl=_getenv("REMEMBER_ME_TTL", "30d"),
        otp_expiration_minutes=_getint("OTP_EXPIRATION_MINUTES", 10),
        otp_length=_getint("OTP_LENGTH", 6),
        otp_max_attempts=_getint("OTP_MAX_ATTEMPTS", 5),
        backup_cron_token=_getenv("BACKUP_CRON_TOKEN", ""),
        csrf_enabled=_getbool("CSRF_ENABLED", True),
        login_rate_limit=_getint("LOGIN_RATE_LIMIT", 5),
        otp_rate_limit=_getint("OTP_RATE_LIMIT", 3),
        rate_limit_window=_getint("RATE_LIMIT_WINDOW", 300),
        trusted_proxies=_getint("TRUSTED_PROXIES", 0),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "JWT_SECRET": s.jwt_secret,
        "JWT_ISSUER": "lpg-nexus",
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DB_POOL_SIZE": s.db_pool_size,
        "DB_MAX_OVERFLOW": s.db_max_overflow,
        "LOG_LEVEL": s.log_level,
        "AUTH_COOKIE_NAME": s.auth_cookie_name,
        "AUTH_TOKEN_TTL": s.auth_token_ttl,
        "REMEMBER_ME_TTL": s.remember_me_ttl,
        "OTP_EXPIRATION_MINUTES": s.otp_expiration_minutes,
        "OTP_LENGTH": s.otp_length,
        "OTP_MAX_ATTEMPTS": s.otp_max_attempts,
        "BACKUP_CRON_TOKEN": s.backup_cron_token,
        "CSRF_ENABLED": s.csrf_enabled,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        "OTP_RATE_LIMIT": s.otp_rate_limit,
        "RATE_LIMIT_WINDOW": s.rate_limit_window,
        # reverse proxies in front of the app whose X-Forwarded-For is trusted
        "TRUSTED_PROXIES": s.trusted_proxies,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # backup uploads (restore) are JSON documents; 25MB is plenty
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
