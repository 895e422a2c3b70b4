from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce DATABASE_URL into an async SQLAlchemy URL.

    Hosted Postgres providers hand out ``postgres://`` URLs with ``?ssl=true``;
    asyncpg wants the ``postgresql+asyncpg`` scheme and an ``ssl`` value it understands.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+asyncpg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    sslmode = query.pop("sslmode", None)
    ssl_val = query.get("ssl") or sslmode
    if ssl_val is not None:
        normalized = ssl_val.lower().strip()
        if normalized in {"0", "false", "no", "off", "disable"}:
            query["ssl"] = "disable"
        elif normalized in {"verify-ca", "verify-full"}:
            query["ssl"] = normalized
        else:
            query["ssl"] = "require"

    return urlunsplit((scheme, parts.netloc, parts.path, urlencode(query, doseq=True), parts.fragment))
