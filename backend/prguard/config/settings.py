"""
Application settings loaded from environment variables / .env.

Grouped by concern.  Domain policies never read these directly; the wiring
layer turns the relevant fields into plain config dataclasses.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Application
    app_name: str = "PR Security Gate"
    app_version: str = "1.0.0"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./prguard.db"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    lock_redis_db: int = 1

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"
    scan_queue: str = "scans"
    scan_worker_concurrency: int = 4
    celery_task_soft_time_limit: int = 1800
    celery_task_time_limit: int = 2100

    # Source-control connector (GitHub REST)
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None
    github_request_timeout: float = 30.0
    max_prs_per_sync: int = 100
    github_webhook_secret: Optional[str] = None

    # Vulnerability detector service
    detector_url: str = "http://localhost:8081/detect"
    detector_api_key: Optional[str] = None
    detector_timeout: float = 120.0

    # Scan orchestration
    detector_max_attempts: int = 3
    detector_backoff_base_seconds: float = 2.0
    detector_backoff_max_seconds: float = 30.0
    diff_fetch_max_attempts: int = 3
    scan_max_resumes: int = 3
    # Must exceed the longest single-file detector time (2 sides x attempts x timeout)
    scan_stale_after_seconds: int = 900
    scan_recovery_interval_seconds: int = 300
    supported_file_extensions: list[str] = [
        ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".php", ".go",
        ".rb", ".cs", ".cpp", ".c", ".h", ".hpp",
    ]

    # Reconciler policy
    reconcile_line_tolerance: int = 5
    reconcile_severity_weight: float = 2.0
    reconcile_proximity_weight: float = 1.0
    reconcile_text_weight: float = 0.1

    # Scoring policy
    score_weight_critical: int = 25
    score_weight_high: int = 15
    score_weight_medium: int = 5
    score_weight_low: int = 2
    score_block_threshold: int = 50

    # Watch scheduler
    watch_poll_interval_seconds: int = 60
    watch_lock_timeout_seconds: int = 300

    # Notifications
    notification_max_attempts: int = 5
    notification_backoff_base_seconds: int = 30
    notification_backoff_factor: int = 2
    notification_backoff_cap_seconds: int = 1800
    notification_claim_lease_seconds: int = 300
    notification_batch_size: int = 10
    notification_poll_interval_seconds: int = 30

    # SMTP
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    smtp_timeout: float = 30.0
    mail_from_name: str = "PR Security Gate"
    mail_from_email: str = "noreply@localhost"


settings = Settings()
