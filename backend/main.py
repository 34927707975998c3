# backend/main.py
import logging
import traceback

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

load_dotenv()

from config import settings
from database import init_db
from utils.errors import ApiError

# Import routerów
from routes.cart import router as cart_router
from routes.checkout import router as checkout_router
from routes.orders import router as orders_router
from routes.stock import router as stock_router
from routes.wishlist import router as wishlist_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def error_body(status_code: int, message: str, kind: str, exc: Exception = None) -> dict:
    body = {"success": False, "statusCode": status_code, "message": message, "kind": kind}
    if exc is not None and settings.ENVIRONMENT != "production":
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


_HTTP_KINDS = {
    400: "InvalidArgument",
    401: "Unauthenticated",
    403: "Forbidden",
    404: "NotFound",
    409: "Conflict",
    502: "DependencyFailure",
}


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.message, exc.kind, exc),
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        kind = _HTTP_KINDS.get(exc.status_code, "Internal" if exc.status_code >= 500 else "InvalidArgument")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, str(exc.detail), kind),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
        return JSONResponse(status_code=400, content=error_body(400, message, "InvalidArgument"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body(500, "Something went wrong", "Internal", exc))


def create_app() -> FastAPI:
    app = FastAPI(title="Storefront API", version="1.0.0")

    # CORS Configuration
    origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
    if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
        origins.append(settings.FRONTEND_URL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Rejestracja routerów
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    app.include_router(stock_router)
    app.include_router(wishlist_router)

    @app.get("/")
    def read_root():
        return {"message": "Storefront API is running"}

    return app


# Inicjalizacja
init_db()
app = create_app()
