# config.py – Centralized configuration with validation
from __future__ import annotations
import json
import os
from dataclasses import dataclass, field
from typing import List, Tuple


def _getenv_bool(key: str, default: bool = False) -> bool:
    """Helper to parse boolean environment variables consistently."""
    value = os.getenv(key, str(default)).lower()
    return value in ("1", "true", "yes", "y", "on")


def _getenv_int(key: str, default: int) -> int:
    """Helper to parse integer environment variables with validation."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: {os.getenv(key)}")


def _getenv_float(key: str, default: float) -> float:
    """Helper to parse float environment variables with validation."""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: {os.getenv(key)}")


def _getenv_json_list(key: str) -> Tuple[str, ...]:
    """Helper to parse a JSON array of strings (e.g. Slack user ids)."""
    raw = os.getenv(key, "").strip()
    if not raw:
        return ()
    try:
        values = json.loads(raw)
    except ValueError:
        raise ValueError(f"Invalid JSON array for {key}: {raw}")
    if not isinstance(values, list):
        raise ValueError(f"{key} must be a JSON array")
    return tuple(str(v) for v in values)


def _getenv_csv(key: str, default: str) -> Tuple[str, ...]:
    return tuple(v.strip() for v in os.getenv(key, default).split(",") if v.strip())


def _database_url() -> str:
    """DATABASE_URL wins; otherwise build one from the Aurora/Postgres parts."""
    url = os.getenv("DATABASE_URL", "")
    if url:
        return url
    host = os.getenv("AURORA_HOST") or os.getenv("POSTGRES_HOST")
    if not host:
        return ""
    port = os.getenv("AURORA_PORT") or os.getenv("POSTGRES_PORT") or "5432"
    name = os.getenv("AURORA_DATABASE") or os.getenv("POSTGRES_DATABASE") or "spacecatdb"
    user = os.getenv("AURORA_USER") or os.getenv("POSTGRES_USER") or "spacecatuser"
    password = os.getenv("AURORA_PASSWORD") or os.getenv("POSTGRES_PASSWORD") or ""
    sslmode = "require" if _getenv_bool("AURORA_SSL") else "prefer"
    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = _database_url()
    pool_min_size: int = _getenv_int("DB_POOL_MIN_SIZE", 1)
    pool_max_size: int = _getenv_int("DB_POOL_MAX_SIZE", 20)
    slow_query_ms: int = _getenv_int("DB_SLOW_QUERY_MS", 1000)

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def __post_init__(self):
        if self.pool_min_size < 1:
            raise ValueError("DB_POOL_MIN_SIZE must be >= 1")
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("DB_POOL_MIN_SIZE must be <= DB_POOL_MAX_SIZE")


@dataclass(frozen=True)
class AwsConfig:
    """AWS resources: queues, buckets and the Athena RUM tables."""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    # Queues
    audit_jobs_queue_url: str = os.getenv("AUDIT_JOBS_QUEUE_URL", "")
    audit_worker_queue_url: str = os.getenv("AUDIT_WORKER_QUEUE_URL", "")
    scraping_jobs_queue_url: str = os.getenv("SCRAPING_JOBS_QUEUE_URL", "")
    # Buckets
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "")
    s3_scraper_bucket: str = os.getenv("S3_SCRAPER_BUCKET", "")
    paid_traffic_cache_uri: str = os.getenv("PAID_TRAFFIC_S3_CACHE_BUCKET_URI", "s3://spacecat-dev-segments/cache")
    # Athena
    rum_metrics_database: str = os.getenv("RUM_METRICS_DATABASE", "rum_metrics")
    rum_metrics_compact_table: str = os.getenv("RUM_METRICS_COMPACT_TABLE", "compact_metrics")
    athena_workgroup: str = os.getenv("ATHENA_WORKGROUP", "primary")
    athena_poll_interval_sec: float = _getenv_float("ATHENA_POLL_INTERVAL_SEC", 1.0)
    athena_max_polls: int = _getenv_int("ATHENA_MAX_POLLS", 120)
    # Presigned URL lifetimes
    scrape_result_url_ttl_sec: int = _getenv_int("SCRAPE_RESULT_URL_TTL_SEC", 7 * 24 * 60 * 60)
    cache_result_url_ttl_sec: int = _getenv_int("CACHE_RESULT_URL_TTL_SEC", 6 * 60 * 60)


@dataclass(frozen=True)
class SlackConfig:
    """Slack bot configuration."""
    bot_token: str = os.getenv("SLACK_BOT_TOKEN", "")
    signing_secret: str = os.getenv("SLACK_SIGNING_SECRET", "")
    run_import_user_ids: Tuple[str, ...] = _getenv_json_list("SLACK_IDS_RUN_IMPORT")
    fallback_channel: str = os.getenv("SLACK_FALLBACK_CHANNEL", "C060T2PPF8V")

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.signing_secret)


@dataclass(frozen=True)
class ImsConfig:
    """IMS service credentials used to obtain service access tokens."""
    host: str = os.getenv("IMS_HOST", "")
    client_id: str = os.getenv("IMS_CLIENT_ID", "")
    client_secret: str = os.getenv("IMS_CLIENT_SECRET", "")
    client_code: str = os.getenv("IMS_CLIENT_CODE", "")
    scope: str = os.getenv("IMS_SCOPE", "")
    timeout: float = _getenv_float("IMS_TIMEOUT", 15)


@dataclass(frozen=True)
class EmailConfig:
    """Post Office (transactional e-mail) configuration."""
    postoffice_endpoint: str = os.getenv("ADOBE_POSTOFFICE_ENDPOINT", "")
    template_name: str = os.getenv("TRIAL_EMAIL_TEMPLATE_NAME", "expdev_xwalk_trial_confirm")
    locale: str = os.getenv("TRIAL_EMAIL_LOCALE", "en-us")
    template_path: str = os.getenv(
        "TRIAL_EMAIL_TEMPLATE_PATH",
        os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates", "trial_user_email.xml"),
    )
    timeout: float = _getenv_float("POSTOFFICE_TIMEOUT", 15)


@dataclass(frozen=True)
class CdnConfig:
    """Brand presence CDN sync settings."""
    base_url: str = os.getenv("BRAND_PRESENCE_CDN_BASE_URL", "https://main--project-elmo-ui-data--adobe.aem.live")
    query_index_path: str = os.getenv("BRAND_PRESENCE_QUERY_INDEX", "/adobe/query-index.json")
    token: str = os.getenv("BRAND_PRESENCE_CDN_TOKEN", "")
    data_dir: str = os.getenv("BRAND_PRESENCE_DATA_DIR", "data")
    week_filters: Tuple[str, ...] = _getenv_csv(
        "BRAND_PRESENCE_WEEKS", "w42,w43,w44,w45,w46,w47,w48,w49"
    )
    page_size: int = _getenv_int("BRAND_PRESENCE_PAGE_SIZE", 1000)
    max_pages: int = _getenv_int("BRAND_PRESENCE_MAX_PAGES", 100)
    timeout: float = _getenv_float("BRAND_PRESENCE_TIMEOUT", 120)

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError("BRAND_PRESENCE_PAGE_SIZE must be >= 1")
        if self.max_pages < 1:
            raise ValueError("BRAND_PRESENCE_MAX_PAGES must be >= 1")


@dataclass(frozen=True)
class SecurityConfig:
    """Security and authentication configuration."""
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("JWT_ALG", "HS256")
    admin_api_key: str = os.getenv("ADMIN_API_KEY", "")

    # Rate limiting
    default_rate: str = os.getenv("DEFAULT_RATE", "200 per minute")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    structured_logging: bool = _getenv_bool("STRUCTURED_LOGGING")


@dataclass(frozen=True)
class ApplicationConfig:
    """Main application configuration."""
    env: str = os.getenv("ENV", "development")
    port: int = _getenv_int("PORT", 8080)
    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "https://experience.adobe.com")
    api_version: str = os.getenv("API_VERSION", "v1")
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "https://spacecat.experiencecloud.live")

    def __post_init__(self):
        if self.api_version not in ("v1", "ci"):
            raise ValueError("API_VERSION must be 'v1' or 'ci'")

    @property
    def origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@dataclass(frozen=True)
class Config:
    """Master configuration object."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    ims: ImsConfig = field(default_factory=ImsConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    cdn: CdnConfig = field(default_factory=CdnConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    app: ApplicationConfig = field(default_factory=ApplicationConfig)

    def validate(self):
        """Validate the complete configuration."""
        if self.app.env == "production":
            if not self.database.is_configured:
                raise ValueError("DATABASE_URL must be set in production")
            if not self.security.jwt_secret:
                raise ValueError("JWT_SECRET must be set in production")

        self.database.__post_init__()
        self.cdn.__post_init__()
        self.app.__post_init__()


# Global config instance
CONFIG = Config()

# Validate configuration on import
try:
    CONFIG.validate()
except Exception as e:
    print(f"Configuration validation failed: {e}")
    print("Please check your environment variables.")
