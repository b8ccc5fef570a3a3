"""
Success envelope shared by every handler: `{status, data, message}`, with
the HTTP status equal to `status`.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    if isinstance(data, SQLModel):
        data = data.model_dump()
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"status": status_code, "data": data, "message": message}),
    )
