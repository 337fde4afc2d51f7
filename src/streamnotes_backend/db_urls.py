from __future__ import annotations


def _normalize_postgres_scheme(url: str) -> str:
    # PostgreSQL：兼容 postgres:// 与默认 driver（psycopg2）
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)
    return url


def normalize_database_url_for_async(database_url: str) -> str:
    """
    将 DATABASE_URL 规范化为运行时使用的异步 driver。

    约定：
    - SQLite：sqlite+aiosqlite://...
    - PostgreSQL：postgresql+psycopg://... （psycopg3 自带 async 支持）
    """
    url = (database_url or "").strip()
    if not url:
        return url

    if url.startswith("sqlite://") and "+aiosqlite" not in url:
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    return _normalize_postgres_scheme(url)


def normalize_database_url_for_alembic(database_url: str) -> str:
    """
    Alembic 使用同步 engine 执行迁移，这里把异步 driver 还原为同步 driver：
    - sqlite+aiosqlite:// -> sqlite://
    - postgresql:// -> postgresql+psycopg:// （强制 psycopg3）
    """
    url = (database_url or "").strip()
    if not url:
        return url

    if url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite+aiosqlite://", "sqlite://", 1)

    return _normalize_postgres_scheme(url)
