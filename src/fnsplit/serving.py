"""
FastAPI server. Receives request bytes, runs them through a generated
dispatcher and returns the encoded result.

    from remote_api import dispatch
    app = create_app(dispatch)
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .errors import CodecError, UnknownMethodError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"


def create_app(
    dispatch: Callable[[bytes], Awaitable[bytes]],
    path: str = "/dispatch",
    title: str = "fnsplit dispatcher",
) -> FastAPI:
    app = FastAPI(title=title)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post(path)
    async def handle(request: Request):
        body = await request.body()
        try:
            result = await dispatch(body)
        except UnknownMethodError as exc:
            return JSONResponse(status_code=404, content={"detail": str(exc)})
        except CodecError as exc:
            return JSONResponse(status_code=400, content={"detail": str(exc)})
        except Exception as exc:
            logger.exception("dispatch failed")
            return JSONResponse(status_code=500, content={"detail": str(exc)})
        return Response(content=result, media_type=CONTENT_TYPE)

    return app
