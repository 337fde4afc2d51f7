"""Where an uploaded object can be found.

The public base URL may or may not include the bucket path segment depending on
deployment, and old notes can hold a full URL, a bare key, or a bucket-prefixed
key. These helpers enumerate every plausible locator so the resolver can try
them in a fixed order without a data migration.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit

from streamnotes_backend.config import Settings

_KEY_SAFE_CHARS = "/~!$&'()*+,;=:@"


@dataclass(frozen=True)
class LocatorConfig:
    public_base_url: str = ""
    bucket: str = ""
    account_id: str = ""
    storage_host: str = "r2.cloudflarestorage.com"

    @classmethod
    def from_settings(cls, cfg: Settings) -> "LocatorConfig":
        return cls(
            public_base_url=cfg.public_base_url.strip().rstrip("/"),
            bucket=cfg.s3_bucket.strip().strip("/"),
            account_id=cfg.s3_account_id.strip(),
            storage_host=cfg.s3_storage_host.strip().strip("/"),
        )

    @property
    def account_base(self) -> str | None:
        if not self.account_id or not self.storage_host:
            return None
        return f"https://{self.account_id}.{self.storage_host}"


def dedupe(items: Iterable[str]) -> list[str]:
    # First occurrence wins; order is preserved.
    return list(dict.fromkeys(items))


def quote_key(key: str) -> str:
    return quote(key, safe=_KEY_SAFE_CHARS)


def _has_path(url: str) -> bool | None:
    """True/False for a valid absolute URL, None when it cannot be parsed."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return bool(parts.path.strip("/"))


def public_base_for_uploads(cfg: LocatorConfig) -> str | None:
    """Base URL recorded in descriptors at upload time.

    Precedence: configured public base (gaining a `/{bucket}` segment when it is
    host-only), then `https://{account}.{host}/{bucket}`, then nothing.
    """
    fallback = f"{cfg.account_base}/{cfg.bucket}" if cfg.account_base and cfg.bucket else None

    base = cfg.public_base_url.rstrip("/")
    if not base:
        return fallback

    has_path = _has_path(base)
    if has_path is None:
        return fallback or base
    if not has_path and cfg.bucket:
        return f"{base}/{cfg.bucket}"
    return base


def public_url_for_key(cfg: LocatorConfig, key: str) -> str | None:
    base = public_base_for_uploads(cfg)
    if not base:
        return None
    return f"{base}/{quote_key(key)}"


def http_candidates(cfg: LocatorConfig, key: str) -> list[str]:
    """Unauthenticated URLs to try for `key`, cheapest and most cacheable first."""
    quoted = quote_key(key)
    base = cfg.public_base_url.rstrip("/")
    account_base = cfg.account_base

    candidates: list[str] = []
    if base:
        candidates.append(f"{base}/{quoted}")
        if cfg.bucket:
            candidates.append(f"{base}/{cfg.bucket}/{quoted}")
    if account_base and cfg.bucket:
        candidates.append(f"{account_base}/{cfg.bucket}/{quoted}")
    if account_base:
        candidates.append(f"{account_base}/{quoted}")
    # Legacy nested keys: keep the bare public form in the list; dedupe drops the repeat.
    if base and "/" in key:
        candidates.append(f"{base}/{quoted}")
    return dedupe(candidates)


def storage_key_variants(bucket: str, key: str) -> list[str]:
    """Object keys to try for an authenticated read (with/without bucket prefix)."""
    variants = [key]
    if bucket:
        prefix = f"{bucket}/"
        if key.startswith(prefix):
            variants.append(key[len(prefix) :])
        else:
            variants.append(f"{bucket}/{key.lstrip('/')}")
    return dedupe(v for v in variants if v)


def key_from_url(cfg: LocatorConfig, url: str | None) -> str | None:
    """Recover the object key from a legacy descriptor url.

    Descriptors store path-free keys, so the url's base (whatever shape it had)
    and a leading bucket segment are both stripped.
    """
    if not url or not url.strip():
        return None
    url = url.strip()

    upload_base = public_base_for_uploads(cfg)
    if upload_base and url.startswith(upload_base + "/"):
        path = url[len(upload_base) + 1 :]
    else:
        try:
            parts = urlsplit(url)
        except ValueError:
            return None
        if not parts.scheme or not parts.netloc:
            return None
        path = parts.path.lstrip("/")
        if cfg.bucket and path.startswith(f"{cfg.bucket}/"):
            path = path[len(cfg.bucket) + 1 :]

    path = unquote(path.split("?", 1)[0].split("#", 1)[0])
    return path or None
