from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder

from ..schemas.common import ApiResponse


def ok(request: Request, data: Any = None, message: str = "") -> ApiResponse[Any]:
    req_id = getattr(request.state, "request_id", None)
    return ApiResponse(success=True, message=message, request_id=req_id or "", data=jsonable_encoder(data))
