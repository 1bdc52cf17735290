"""
Application configuration.
All settings are loaded from environment variables (or .env).
Provider credentials are never configured here: callers pass their own key per request.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every value has a default so the service starts with zero configuration;
    the in-process rate limiter is used unless REDIS_URL is set.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in main.py.
    cors_origins: str = ""
    # Trusted proxy IPs (comma-separated). Used for X-Forwarded-For in production.
    trusted_proxy_ips: str = ""

    # ===========================================
    # REDIS (optional, shared rate-limit counters)
    # ===========================================
    redis_url: str = ""

    # ===========================================
    # PROVIDER SELECTION
    # ===========================================
    default_image_provider: str = "pollinations"
    default_video_provider: str = "zhipu"

    # ===========================================
    # PROVIDER ENDPOINTS
    # ===========================================
    pollinations_api_url: str = "https://image.pollinations.ai"
    zhipu_api_url: str = "https://open.bigmodel.cn/api/paas/v4"
    openai_api_url: str = "https://api.openai.com/v1"
    stability_api_url: str = "https://api.stability.ai/v1"
    replicate_api_url: str = "https://api.replicate.com/v1"
    together_api_url: str = "https://api.together.xyz/v1"
    fal_api_url: str = "https://fal.run"
    fal_queue_url: str = "https://queue.fal.run"

    # ===========================================
    # HTTP CLIENT
    # ===========================================
    http_client_timeout: float = 10.0
    # Synchronous providers hold the connection until the asset is rendered
    provider_request_timeout: float = 120.0

    # ===========================================
    # TASK POLLING
    # ===========================================
    image_poll_interval_seconds: float = 2.0
    image_poll_max_attempts: int = 60
    video_poll_interval_seconds: float = 5.0
    video_poll_max_attempts: int = 60
    # Transient poll errors tolerated before giving up (0 = first error propagates)
    poll_transient_error_budget: int = 0

    # ===========================================
    # INBOUND RATE LIMITS (per client IP, fixed window)
    # ===========================================
    rate_limit_window_seconds: int = 60
    rate_limit_generate_image: int = 10
    rate_limit_generate_video: int = 5
    rate_limit_status: int = 30
    rate_limit_test_key: int = 5

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5
    # Raw provider payloads are cut to this many characters in logs and error details
    log_payload_max_chars: int = 500

    @field_validator("default_image_provider", "default_video_provider")
    @classmethod
    def normalize_provider_id(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        value = v.strip().upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return value

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        """Get trusted proxy IPs as a set."""
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
