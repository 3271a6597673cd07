from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000"

    # Activation service (remote source of truth)
    api_base_url: str = "http://localhost:4000"
    request_timeout_seconds: float | None = None  # no timeout by default

    # Local durable cache
    redis_url: str = "redis://localhost:6379/0"
    cache_key: str = "activation_flow_data"
    cache_schema_version: str = "1.0.0"
    cache_ttl_hours: int = 24

    # Auth / JWT (cookie name matches the activation service)
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    auth_cookie_name: str = "auth-token"

    # Document uploads
    max_upload_bytes: int = 10 * 1024 * 1024  # 10MB
    allowed_upload_types: str = "image/jpeg,image/jpg,image/png,image/webp,image/gif"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
