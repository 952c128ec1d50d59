"""Uniform JSON envelope returned by every endpoint."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    status_code: int,
    data: Any,
    message: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    """Wrap ``data`` as ``{statuscode, data, message}`` with a matching HTTP status."""

    content = {"statuscode": status_code, "data": data, "message": message}
    content.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=dict(headers) if headers else None,
    )


__all__ = ["api_response"]
