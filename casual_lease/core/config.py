"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Casual Lease"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    app_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://casual_lease:casual_lease@db:5432/casual_lease"
    database_echo: bool = False

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://redis:6379/0"

    # Auth
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Email / SMTP - all of host, user, password and from must be set to send
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    smtp_use_tls: bool = False  # implicit TLS (port 465); STARTTLS is negotiated automatically
    smtp_timeout_seconds: float = 30.0

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "aud"

    # Invoice payment terms
    payment_grace_days: int = 14

    # Payment reminder scheduler
    reminders_enabled: bool = True
    reminder_interval_hours: int = 24
    reminder_run_timeout_seconds: int = 15 * 60

    # Invoice outbox
    invoice_outbox_max_attempts: int = 5
    invoice_outbox_drain_seconds: int = 300

    model_config = {"env_prefix": "CL_", "env_file": ".env", "extra": "ignore"}

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.smtp_from)


settings = Settings()
