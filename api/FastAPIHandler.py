"""
FastAPI Backend for StyleBlend
Upload content and style images, poll for the blended result, export it as JPEG
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import Optional, List, Dict
import time
import logging

from core.Errors import InferenceError, InvalidImageError
from core.ImageCodec import ImageCodec
from core.StyleSession import StyleSession
from utilities.ConfigManager import ConfigManager
from utilities.Logger import Logger

VERSION = "1.0.0"

# Setup logging
logger = Logger.setup_logger(logger_name="API", log_level=logging.INFO)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    models: Dict[str, Dict[str, List[List[int]]]]
    result_available: bool
    pending: bool


class SlotResponse(BaseModel):
    message: str
    request_id: Optional[int] = None
    width: int
    height: int


class PendingResponse(BaseModel):
    status: str
    request_id: Optional[int] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    timestamp: str


def _now():
    return time.strftime('%Y-%m-%d %H:%M:%S')


def _error(status_code, error, details=None):
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details, timestamp=_now()).model_dump(),
    )


def _jpeg(data, filename=None):
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'} if filename else None
    return Response(content=data, media_type="image/jpeg", headers=headers)


async def _read_image(upload: UploadFile):
    data = await upload.read()
    return ImageCodec.decode_image(data)


def create_app(session: Optional[StyleSession] = None, config: Optional[dict] = None) -> FastAPI:
    """
    Build the API around a session. Without a session one is created from the
    configuration at startup, which fails if the bundled assets cannot be loaded.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.session is None:
            logger.info("StyleBlend API starting up, loading assets...")
            app.state.session = StyleSession.from_config(config or ConfigManager.load_config())
        yield
        logger.info("StyleBlend API shutting down...")

    app = FastAPI(
        title="StyleBlend API",
        description="Neural style transfer with a predict and a transfer network",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.session = session

    def current_session() -> StyleSession:
        return app.state.session

    @app.exception_handler(InvalidImageError)
    async def invalid_image_handler(request, exc):
        logger.warning(f"Rejected image: {exc}")
        return _error(400, "Invalid image", str(exc))

    @app.exception_handler(InferenceError)
    async def inference_error_handler(request, exc):
        logger.error(f"Inference failed: {exc}")
        return _error(500, "Inference failed", str(exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return _error(exc.status_code, exc.detail)

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """General exception handler"""
        logger.error(f"Unhandled exception: {exc!r}")
        return _error(500, "Internal server error", str(exc) if app.debug else None)

    @app.get("/", response_model=HealthResponse)
    async def health_check():
        """Health check with the loaded model shapes"""
        s = current_session()
        models = {
            model.name: {
                "inputs": [list(shape) for shape in model.input_shapes],
                "output": [list(model.output_shape)],
            }
            for model in (s.pipeline.predict, s.pipeline.transfer)
        }
        return HealthResponse(
            status="healthy",
            timestamp=_now(),
            version=VERSION,
            models=models,
            result_available=s.result is not None,
            pending=s.pending,
        )

    @app.post("/content", response_model=SlotResponse)
    async def upload_content(content: UploadFile = File(..., description="Content image file")):
        image = await _read_image(content)
        request_id = current_session().set_content(image)
        logger.info(f"Content replaced ({image.width}x{image.height}), request {request_id}")
        return SlotResponse(message="Content image set", request_id=request_id,
                            width=image.width, height=image.height)

    @app.post("/style", response_model=SlotResponse)
    async def upload_style(style: UploadFile = File(..., description="Style image file")):
        image = await _read_image(style)
        request_id = current_session().set_style(image)
        logger.info(f"Style replaced ({image.width}x{image.height}), request {request_id}")
        return SlotResponse(message="Style image set", request_id=request_id,
                            width=image.width, height=image.height)

    @app.get("/result")
    async def get_result():
        """Latest result as JPEG, 202 with the in-flight request id while a merge is running"""
        s = current_session()
        if s.pending:
            return JSONResponse(
                status_code=202,
                content=PendingResponse(status="pending", request_id=s.worker.latest_id or None).model_dump(),
            )
        if s.error is not None:
            return _error(409, "Last merge failed", str(s.error))
        if s.result is None:
            raise HTTPException(status_code=404, detail="No result yet")
        return _jpeg(s.result_jpeg())

    @app.get("/share")
    async def share_result():
        """Latest result as a downloadable share.jpg"""
        s = current_session()
        if s.result is None:
            raise HTTPException(status_code=404, detail="No result to share")
        return _jpeg(s.result_jpeg(), filename=s.share_file.name)

    @app.post("/merge")
    async def merge_once(
        content: UploadFile = File(..., description="Content image file"),
        style: UploadFile = File(..., description="Style image file"),
    ):
        """One-shot merge that leaves the session slots untouched"""
        s = current_session()
        content_image = await _read_image(content)
        style_image = await _read_image(style)
        result = await run_in_threadpool(s.pipeline.merge, content_image, style_image, False)
        return _jpeg(ImageCodec.to_jpeg(result, quality=s.jpeg_quality))

    return app
