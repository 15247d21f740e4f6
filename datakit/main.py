import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from datakit.api.views import router as views_router
from datakit.cache.provider import CacheProvider, build_cache_provider
from datakit.core.config import settings
from datakit.core.deps import get_translator
from datakit.core.http_hardening import install_request_logging
from datakit.dataviews.exceptions import DataViewError
from datakit.dataviews.repository import DataSourceRepository
from datakit.dataviews.service import DataViewQueryService
from datakit.sources.definitions import load_definitions

_LOG = logging.getLogger("datakit.app")


def _dataview_error_handler(request: Request, exc: DataViewError) -> JSONResponse:
    translator = get_translator(request)
    if exc.status_code >= 500:
        _LOG.warning("%s %s failed code=%s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.translate(translator)},
    )


def create_app(repository: DataSourceRepository | None = None, cache: CacheProvider | None = None) -> FastAPI:
    logging.getLogger("datakit").setLevel(settings.LOG_LEVEL.upper())
    if repository is None:
        definitions = load_definitions(settings.VIEWS_CONFIG_PATH) if settings.VIEWS_CONFIG_PATH else []
        repository = DataSourceRepository(definitions)
    if cache is None:
        cache = build_cache_provider(settings)

    app = FastAPI(title=settings.APP_NAME, version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_logging(app)
    app.add_exception_handler(DataViewError, _dataview_error_handler)
    app.state.dataview_service = DataViewQueryService(repository, cache, settings)

    app.include_router(views_router, prefix="/api/views")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
