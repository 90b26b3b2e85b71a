from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Assessment Engine"
    env: str = "dev"
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    storage_backend: str = "inmemory"  # inmemory|mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "assessments"

    # Caller identity (cookie first, then Authorization: Bearer)
    jwt_secret_key: str = "assessment-engine-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    auth_cookie_name: str = "token"

    # Grading
    default_passing_score: int = 70
    written_answer_min_quality: int = 15
    evaluator_provider: str = "gemini"  # gemini|groq|mock|none
    evaluator_model: str = "gemini-1.5-flash"
    evaluator_timeout_seconds: float = 60.0
    gemini_api_key: str | None = None
    gemini_api_url: str | None = None
    groq_api_key: str | None = None
    groq_base_url: str | None = None

    # Bulk declaration drain
    declare_batch_size: int = 20
    declare_max_batches: int = 500
    declare_time_budget_seconds: float = 300.0

    # Outbound mail; unset host means notifications are only logged
    smtp_host: str | None = None
    smtp_port: int = 465
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_ssl: bool = True
    mail_from: str = "no-reply@assessments.local"

    # Observability (OpenTelemetry)
    observability_enabled: bool = False
    otel_service_name: str = "assessment-engine"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_console: bool = False
    otel_sample_rate: float = 0.1


settings = Settings()
