"""Connection URL resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

if TYPE_CHECKING:
    from .models import ConnectionInfo

HOST_PLACEHOLDER = "${host}"
PORT_PLACEHOLDER = "${port}"
DB_PLACEHOLDER = "${db}"


def resolve_url(info: "ConnectionInfo") -> str:
    """Return the URL used to reach ``info``.

    A non-blank explicit URL is returned verbatim. Otherwise the driver's
    template is filled in by plain substring replacement; nothing is
    validated here, a bad URL fails when the connection is opened.
    """

    if info.url and info.url.strip():
        return info.url
    url = info.driver_type.url_template
    url = url.replace(HOST_PLACEHOLDER, info.host or "")
    url = url.replace(PORT_PLACEHOLDER, "" if info.port is None else str(info.port))
    url = url.replace(DB_PLACEHOLDER, info.database or "")
    return url


def redact_url(url: str) -> str:
    """Mask a password embedded in ``url``; URLs SQLAlchemy cannot parse pass through."""

    try:
        return make_url(url).render_as_string(hide_password=True)
    except (ArgumentError, ValueError):
        return url


__all__ = ["DB_PLACEHOLDER", "HOST_PLACEHOLDER", "PORT_PLACEHOLDER", "redact_url", "resolve_url"]
