from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.logging import setup_logging
from app.db import mongo
from app.db.repos import init_models

from app.api.v1.health import router as health_router
from app.api.v1.users import router as users_router
from app.api.v1.posts import router as posts_router
from app.api.v1.stats import router as stats_router

logger = setup_logging()

def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)

    @app.on_event("startup")
    async def _startup():
        await mongo.connect()
        await init_models()
        logger.info("Models initialised, indexes ensured")

    @app.on_event("shutdown")
    async def _shutdown():
        await mongo.close()

    # documents built from request data that break model constraints
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    # driver errors are passed through as-is
    @app.exception_handler(PyMongoError)
    async def _mongo_error(request: Request, exc: PyMongoError):
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(posts_router, prefix="/api/v1")
    app.include_router(stats_router, prefix="/api/v1")

    return app

app = create_app()
