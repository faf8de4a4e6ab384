import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from grocery.config import settings
from grocery.database import create_db_and_tables
from grocery.exceptions import AppError
from grocery.routes import (
    auth,
    cart,
    categories,
    contacts,
    health,
    orders,
    products,
    reviews,
    users,
)
from grocery.utils.response import MESSAGES, api_response

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()
    yield


app = FastAPI(title="Grocery Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------- ERROR HANDLERS --------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return api_response(exc.message, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return api_response(exc.detail, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(loc),
            "message": error.get("msg", MESSAGES["VALIDATION_ERROR"]),
        })
    return api_response(errors, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"{request.method} {request.url.path} integrity error: {exc.orig}")
    return api_response(MESSAGES["DUPLICATE_ENTRY"], status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"{request.method} {request.url.path} database error")
    message = str(exc) if settings.debug else MESSAGES["DB_ERROR"]
    return api_response(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} unhandled error")
    message = str(exc) if settings.debug else MESSAGES["SERVER_ERROR"]
    return api_response(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# -------- ROUTERS --------

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(contacts.router, prefix="/api/contacts", tags=["Contacts"])
app.include_router(health.router, prefix="/api/health", tags=["Health"])
