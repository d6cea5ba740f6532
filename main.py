from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from shared.config import settings
from shared.exceptions import InventoryException
from shared.logging_config import setup_logging, get_logger
from shared.responses import error_response

from services.identity.controllers.auth_service import router as auth_router
from services.identity.controllers.user_service import router as user_router
from services.catalog.controllers.subject_service import router as subject_router
from services.catalog.controllers.material_service import router as material_router
from services.directory.controllers.school_service import router as school_router
from services.issuance.controllers.issuance_service import router as issuance_router
from services.issuance.controllers.history_service import router as history_router
from services.reporting.controllers.export_service import router as export_router
from services.reporting.controllers.stats_service import router as stats_router

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Debug mode: {'ON' if settings.DEBUG else 'OFF'}")
    if settings.SECRET_KEY == "your-secret-key":
        logger.warning("SECRET_KEY is the built-in default, set it in .env before deploying")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryException)
async def inventory_exception_handler(request: Request, exc: InventoryException):
    logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.error_code, exc.details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(message, "VALIDATION_ERROR"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("An unexpected error occurred"),
    )


@app.get("/")
def health_check():
    return {"status": f"{settings.APP_NAME} is running ✅"}


app.include_router(auth_router)
app.include_router(user_router)
app.include_router(subject_router)
app.include_router(material_router)
app.include_router(school_router)
app.include_router(issuance_router)
app.include_router(history_router)
app.include_router(export_router)
app.include_router(stats_router)
