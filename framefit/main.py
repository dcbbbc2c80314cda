from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from framefit.config import list_products
from framefit.schemas import ColourMatchResponse, ColourPool, FitResponse, ProductInfo
from framefit.services.pipeline import KioskVisionPipeline, NoFaceDetectedError

LOG = logging.getLogger("framefit.api")

app = FastAPI(title="Framefit Kiosk Vision", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pipeline = KioskVisionPipeline()

MAX_UPLOAD_MB = max(1.0, float(os.getenv("FRAMEFIT_MAX_UPLOAD_MB", "8")))
MAX_UPLOAD_BYTES = int(MAX_UPLOAD_MB * 1024 * 1024)
UPLOAD_READ_CHUNK_BYTES = max(64 * 1024, int(os.getenv("FRAMEFIT_UPLOAD_CHUNK_BYTES", str(1024 * 1024))))


def _content_length_exceeds_limit(request: Request, max_bytes: int) -> bool:
    header = request.headers.get("content-length")
    if not header:
        return False
    try:
        # Two frames may be posted in one request.
        return int(header) > max_bytes * 2
    except ValueError:
        return False


async def _read_upload_with_limit(frame: UploadFile, max_bytes: int, chunk_size: int) -> bytes:
    chunks = bytearray()
    total_bytes = 0
    while True:
        chunk = await frame.read(chunk_size)
        if not chunk:
            break
        total_bytes += len(chunk)
        if total_bytes > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Uploaded frame is too large. Hard limit is {MAX_UPLOAD_MB:.0f}MB.",
            )
        chunks.extend(chunk)
    return bytes(chunks)


async def _read_frames(
    request: Request,
    frame: UploadFile,
    confirm_frame: UploadFile | None,
) -> tuple[bytes, bytes | None]:
    if _content_length_exceeds_limit(request, MAX_UPLOAD_BYTES):
        raise HTTPException(
            status_code=413,
            detail=f"Request body is too large. Hard limit is {MAX_UPLOAD_MB:.0f}MB per frame.",
        )
    if frame.content_type is None or not frame.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Please upload a valid image frame.")

    frame_bytes = await _read_upload_with_limit(frame, MAX_UPLOAD_BYTES, UPLOAD_READ_CHUNK_BYTES)
    if not frame_bytes:
        raise HTTPException(status_code=400, detail="Uploaded frame is empty.")

    confirm_bytes = None
    if confirm_frame is not None:
        confirm_bytes = await _read_upload_with_limit(confirm_frame, MAX_UPLOAD_BYTES, UPLOAD_READ_CHUNK_BYTES)
    return frame_bytes, confirm_bytes or None


def _no_face_response(exc: NoFaceDetectedError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "no_face_detected",
            "detail": str(exc),
            "action": "Position your face inside the oval and try again.",
        },
    )


@app.get("/api/health")
def health() -> dict[str, Any]:
    settings = pipeline.settings
    return {
        "status": "ok",
        "scan": {
            "poll_interval_ms": settings.poll_interval_ms,
            "required_hits": settings.required_hits,
            "colour_scan_ms": settings.colour_scan_ms,
            "fit_scan_ms": settings.fit_scan_ms,
        },
        "max_upload_mb": MAX_UPLOAD_MB,
    }


@app.get("/api/products", response_model=list[ProductInfo])
def products() -> list[ProductInfo]:
    payload: list[ProductInfo] = []
    for product_id, product in list_products().items():
        payload.append(
            ProductInfo(
                id=product_id,
                name=product.name,
                tagline=product.tagline,
                colourways=product.colourways,
                sizes=product.sizes,
            )
        )
    return payload


@app.post("/api/colour-match", response_model=ColourMatchResponse)
async def colour_match(
    request: Request,
    frame: UploadFile = File(...),
    confirm_frame: UploadFile | None = File(None),
    product_id: str = Form(""),
    pool: ColourPool = Form("product"),
) -> ColourMatchResponse | JSONResponse:
    try:
        frame_bytes, confirm_bytes = await _read_frames(request, frame, confirm_frame)
        return pipeline.analyze_colour(
            file_bytes=frame_bytes,
            filename=frame.filename or "frame.jpg",
            product_id=product_id or None,
            confirm_bytes=confirm_bytes,
            confirm_filename=confirm_frame.filename if confirm_frame is not None else None,
            pool=pool,
        )
    except HTTPException:
        raise
    except NoFaceDetectedError as exc:
        return _no_face_response(exc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception:  # pragma: no cover
        LOG.exception("colour_match_failed product=%s", product_id)
        return JSONResponse(status_code=500, content={"error": "analysis_failed", "detail": "Internal error"})
    finally:
        await frame.close()
        if confirm_frame is not None:
            await confirm_frame.close()


@app.post("/api/fit", response_model=FitResponse)
async def fit(
    request: Request,
    frame: UploadFile = File(...),
    confirm_frame: UploadFile | None = File(None),
    product_id: str = Form(""),
) -> FitResponse | JSONResponse:
    try:
        frame_bytes, confirm_bytes = await _read_frames(request, frame, confirm_frame)
        return pipeline.analyze_fit(
            file_bytes=frame_bytes,
            filename=frame.filename or "frame.jpg",
            product_id=product_id or None,
            confirm_bytes=confirm_bytes,
            confirm_filename=confirm_frame.filename if confirm_frame is not None else None,
        )
    except HTTPException:
        raise
    except NoFaceDetectedError as exc:
        return _no_face_response(exc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception:  # pragma: no cover
        LOG.exception("fit_failed product=%s", product_id)
        return JSONResponse(status_code=500, content={"error": "analysis_failed", "detail": "Internal error"})
    finally:
        await frame.close()
        if confirm_frame is not None:
            await confirm_frame.close()
