"""FastAPI service exposing the news digest pipeline."""

from __future__ import annotations

import logging
import os
from typing import Any, Awaitable, Dict, Optional, TypeVar

from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .activity import ActivityLogger
from .auth import require_user
from .broadcast import Broadcaster
from .config import Settings, configure_logging, get_settings
from .errors import ClientInputError, DownstreamCallError, NewsDigestError
from .llm import LanguageModel
from .models import PipelineResult, PromptRequest, TextQuery, User, VoiceQuery
from .pipeline import NewsPipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _add_cors(app: FastAPI) -> None:
    """Allow browser clients to call the API."""
    allow_all = os.getenv("CORS_ALLOW_ALL", "true").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all or not origins:
        origins = ["*"]
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )


def _add_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NewsDigestError)
    async def _digest_error(request: Request, exc: NewsDigestError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
            )
        return JSONResponse(
            status_code=exc.status_code, content={"error": exc.public_message}
        )

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body"},
        )


async def _guarded(call: Awaitable[T]) -> T:
    """Await a pipeline call, mapping unexpected failures to a processing error."""
    try:
        return await call
    except NewsDigestError:
        raise
    except Exception as exc:
        raise NewsDigestError(str(exc)) from exc


def _digest_notice(user: User, result: PipelineResult) -> Dict[str, Any]:
    response = result.response
    return {
        "type": "news_digest",
        "user_id": user.id,
        "topic": response.topic_data.topic_original,
        "title": response.topic_data.title,
        "language": response.topic_data.language,
        "items": len(response.news),
    }


def _schedule_side_effects(
    request: Request,
    background_tasks: BackgroundTasks,
    user: User,
    result: PipelineResult,
) -> None:
    """Queue the post-response notifications; they run after delivery."""
    state = request.app.state
    if result.activity is not None:
        background_tasks.add_task(state.activity_logger.log, result.activity)
    if state.settings.broadcast_digests:
        background_tasks.add_task(state.broadcaster.broadcast, _digest_notice(user, result))


def get_pipeline(request: Request) -> NewsPipeline:
    return request.app.state.pipeline


def get_model(request: Request) -> LanguageModel:
    return request.app.state.model


def create_app(
    settings: Optional[Settings] = None,
    *,
    model: Optional[LanguageModel] = None,
    pipeline: Optional[NewsPipeline] = None,
    activity_logger: Optional[ActivityLogger] = None,
    broadcaster: Optional[Broadcaster] = None,
) -> FastAPI:
    """Build the application and its collaborators once, at startup."""
    settings = settings or get_settings()
    app = FastAPI(title="News Digest")
    app.state.settings = settings
    app.state.model = model or LanguageModel(settings)
    app.state.pipeline = pipeline or NewsPipeline(app.state.model, settings=settings)
    app.state.activity_logger = activity_logger or ActivityLogger(settings)
    app.state.broadcaster = broadcaster or Broadcaster()

    _add_cors(app)
    _add_error_handlers(app)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/news/text")
    async def news_from_text(
        payload: TextQuery,
        request: Request,
        background_tasks: BackgroundTasks,
        user: User = Depends(require_user),
        pipeline: NewsPipeline = Depends(get_pipeline),
    ) -> JSONResponse:
        if not payload.text or not payload.text.strip():
            raise ClientInputError("Text is required")
        result = await _guarded(pipeline.process_request(payload.text, user_id=user.id))
        _schedule_side_effects(request, background_tasks, user, result)
        return JSONResponse(content=result.response.model_dump(mode="json"))

    @app.post("/api/news/voice")
    async def news_from_voice(
        payload: VoiceQuery,
        request: Request,
        background_tasks: BackgroundTasks,
        user: User = Depends(require_user),
        pipeline: NewsPipeline = Depends(get_pipeline),
    ) -> JSONResponse:
        if not payload.audio:
            raise ClientInputError("Audio is required")
        result = await _guarded(pipeline.process_voice(payload.audio, user_id=user.id))
        _schedule_side_effects(request, background_tasks, user, result)
        return JSONResponse(content=result.response.model_dump(mode="json"))

    @app.post("/api/openai/generate-text")
    async def generate_text(
        payload: PromptRequest,
        user: User = Depends(require_user),
        model: LanguageModel = Depends(get_model),
    ) -> Dict[str, Any]:
        if not payload.prompt:
            raise ClientInputError("Prompt is required")
        try:
            result = await model.complete(
                [{"role": "user", "content": payload.prompt}], step="Generate text"
            )
        except Exception as exc:
            raise DownstreamCallError(
                str(exc), public_message="OpenAI API request failed"
            ) from exc
        return {"result": result, "user": user.model_dump()}

    @app.post("/api/openai/generate-image")
    async def generate_image(
        payload: PromptRequest,
        user: User = Depends(require_user),
        model: LanguageModel = Depends(get_model),
    ) -> Dict[str, Any]:
        if not payload.prompt:
            raise ClientInputError("Prompt is required")
        try:
            image_url = await model.generate_image(payload.prompt)
        except Exception as exc:
            raise DownstreamCallError(
                str(exc), public_message="OpenAI image generation failed"
            ) from exc
        return {"image_url": image_url, "user": user.model_dump()}

    @app.websocket("/ws/updates")
    async def live_updates(websocket: WebSocket) -> None:
        registry: Broadcaster = websocket.app.state.broadcaster
        await websocket.accept()
        registry.register(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            registry.unregister(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(
        "news_digest.server:app",
        host=get_settings().host,
        port=get_settings().port,
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
