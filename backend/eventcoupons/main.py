import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventcoupons.api.v1.routes import api_router
from eventcoupons.core.config import settings
from eventcoupons.core.logging_config import configure_logging
from eventcoupons.core.sentry import init_sentry
from eventcoupons.core.startup_checks import validate_production_settings
from eventcoupons.middleware.request_log import RequestLoggingMiddleware
from eventcoupons.schemas.error import ErrorResponse
from eventcoupons.services.coupon_validation import CouponDefinitionError

logger = logging.getLogger(__name__)


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    validate_production_settings()
    init_sentry()
    tags_metadata = [
        {"name": "coupons", "description": "Coupon eligibility, discounts, discovery and usage stats"},
        {"name": "health", "description": "Liveness and readiness checks"},
        {"name": "metrics", "description": "In-process counters"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
        swagger_ui_parameters={"displayRequestDuration": True},
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ErrorResponse(detail=exc.detail, code=None)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(payload.model_dump(exclude_none=True)))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        payload = ErrorResponse(detail=errors, code="validation_error")
        return JSONResponse(status_code=422, content=payload.model_dump(exclude_none=True))

    @app.exception_handler(CouponDefinitionError)
    async def coupon_definition_handler(request: Request, exc: CouponDefinitionError):
        payload = ErrorResponse(detail=str(exc), code="invalid_coupon", fields=exc.errors)
        return JSONResponse(status_code=422, content=payload.model_dump())

    logger.info("application configured", extra={"environment": settings.environment})
    return app


app = get_application()
