from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Stream Notes Backend"
    api_prefix: str = "/api"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"
    log_level: str = "INFO"

    # Primary env: CORS_ALLOW_ORIGINS; also accept CORS_ORIGINS as alias.
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS"),
    )

    # Object storage (Cloudflare R2, Storj gateway or any S3-compatible provider).
    # Legacy R2_* / STORJ_* variable names are accepted as aliases.
    s3_bucket: str = Field(
        default="",
        validation_alias=AliasChoices("S3_BUCKET", "R2_BUCKET", "STORJ_BUCKET"),
    )
    s3_account_id: str = Field(
        default="",
        validation_alias=AliasChoices("S3_ACCOUNT_ID", "R2_ACCOUNT_ID"),
    )
    s3_storage_host: str = "r2.cloudflarestorage.com"
    s3_endpoint_url: str = Field(
        default="",
        validation_alias=AliasChoices("S3_ENDPOINT_URL", "STORJ_S3_ENDPOINT"),
    )
    s3_region: str = "auto"
    s3_access_key_id: str = Field(
        default="",
        validation_alias=AliasChoices("S3_ACCESS_KEY_ID", "R2_ACCESS_KEY_ID", "STORJ_ACCESS_KEY"),
    )
    s3_secret_access_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "S3_SECRET_ACCESS_KEY", "R2_SECRET_ACCESS_KEY", "STORJ_SECRET_KEY"
        ),
    )
    s3_force_path_style: bool = False

    # Public base for unauthenticated reads, with or without the bucket path segment.
    public_base_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "PUBLIC_BASE_URL",
            "R2_PUBLIC_URL",
            "NEXT_PUBLIC_R2_PUBLIC_URL",
            "STORJ_S3_PUBLIC_BASE",
        ),
    )

    # 代理：超时作用于每一次出站请求（每个候选 URL 单独计时）
    proxy_timeout_seconds: float = 15.0
    proxy_diagnostic_body_bytes: int = 2000
    proxy_log_body_bytes: int = 400

    # 上传限制（单文件字节数 / 单次文件数，0 表示不限制）
    attachments_max_size_bytes: int = 25 * 1024 * 1024
    attachments_max_files: int = 20

    # Validate production settings early to fail fast on unsafe defaults.
    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        if self.environment.strip().lower() != "production":
            return self

        errors: list[str] = []

        cors_v = self.cors_allow_origins.strip()
        if not cors_v or cors_v == "*":
            errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        # If any storage setting is provided, require the full set so uploads cannot
        # silently fail at request time.
        s3_fields = {
            "S3_BUCKET": self.s3_bucket.strip(),
            "S3_ACCESS_KEY_ID": self.s3_access_key_id.strip(),
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key.strip(),
            "S3_ENDPOINT_URL|S3_ACCOUNT_ID": self.storage_endpoint_url(),
        }
        if any(v for v in s3_fields.values()) and any(not v for v in s3_fields.values()):
            missing = ",".join([k for k, v in s3_fields.items() if not v])
            errors.append(f"S3 config incomplete in production; missing: {missing}")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def storage_endpoint_url(self) -> str:
        explicit = self.s3_endpoint_url.strip().rstrip("/")
        if explicit:
            return explicit
        account = self.s3_account_id.strip()
        host = self.s3_storage_host.strip().strip("/")
        if account and host:
            return f"https://{account}.{host}"
        return ""

    def storage_credentials_configured(self) -> bool:
        return bool(
            self.s3_bucket.strip()
            and self.s3_access_key_id.strip()
            and self.s3_secret_access_key.strip()
            and self.storage_endpoint_url()
        )

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if not self.storage_credentials_configured():
            warnings.append(
                "object storage credentials are not configured; uploads and deletes will fail"
            )
        return warnings


settings = Settings()
