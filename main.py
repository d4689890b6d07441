import hmac
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
import services
from database import get_db
from errors import AuthError, ServiceError
from logging_config import LoggingMiddleware, configure_logging

configure_logging()
logger = structlog.get_logger()

CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:3000")

# Shared secret guarding item creation
API_KEY = "12345"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not database.DATABASE_URL:
        logger.error("database_connection_failed", error="DATABASE_URL is not set")
    elif database.db is not None:
        try:
            # server selection blocks for up to serverSelectionTimeoutMS
            await run_in_threadpool(database.ping, database.db)
            await run_in_threadpool(database.ensure_indexes, database.db)
            logger.info("database_connected", database=database.DATABASE_NAME)
        except PyMongoError as e:
            logger.error("database_connection_failed", error=str(e))
    yield
    if database.client is not None:
        database.client.close()


app = FastAPI(title="LuminaMarket API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CORS_ORIGIN],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


# Access gate

def authorize(credential: Optional[str]) -> bool:
    if credential is None:
        return False
    return hmac.compare_digest(credential.encode(), API_KEY.encode())


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    if not authorize(x_api_key):
        raise AuthError()


@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "🚀 LuminaMarket Server Running"


# Items

@app.get("/api/items")
def list_items(db: Optional[Database] = Depends(get_db)):
    try:
        return services.list_items(db)
    except ServiceError as e:
        logger.warning("list_items_failed", error=e.message)
        raise HTTPException(status_code=500, detail="Failed to fetch items")


@app.post("/api/items", status_code=201, dependencies=[Depends(require_api_key)])
def add_item(payload: Dict[str, Any] = Body(...), db: Optional[Database] = Depends(get_db)):
    try:
        return services.create_item(db, payload)
    except ServiceError as e:
        logger.warning("add_item_failed", error=e.message)
        raise HTTPException(status_code=400, detail="Item add failed")


# Users

@app.get("/api/users/{uid}")
def get_user(uid: str, db: Optional[Database] = Depends(get_db)):
    try:
        return services.get_user(db, uid)
    except ServiceError as e:
        logger.warning("get_user_failed", uid=uid, error=e.message)
        raise HTTPException(status_code=500, detail="User not found")


@app.post("/api/users/sync")
def sync_user(payload: Dict[str, Any] = Body(...), db: Optional[Database] = Depends(get_db)):
    try:
        return services.sync_user(db, payload)
    except ServiceError as e:
        logger.warning("sync_user_failed", error=e.message)
        raise HTTPException(status_code=400, detail="User sync failed")


# Orders

@app.post("/api/orders", status_code=201)
def create_order(payload: Dict[str, Any] = Body(...), db: Optional[Database] = Depends(get_db)):
    try:
        return services.create_order(db, payload)
    except ServiceError as e:
        logger.warning("create_order_failed", error=e.message)
        raise HTTPException(status_code=400, detail="Order failed")


@app.get("/api/orders/{email}")
def list_orders_by_email(email: str, db: Optional[Database] = Depends(get_db)):
    try:
        return services.list_orders_by_email(db, email)
    except ServiceError as e:
        logger.warning("list_orders_failed", email=email, error=e.message)
        raise HTTPException(status_code=500, detail="Failed to fetch orders")


@app.get("/api/orders")
def list_all_orders(db: Optional[Database] = Depends(get_db)):
    try:
        return services.list_all_orders(db)
    except ServiceError as e:
        logger.warning("list_orders_failed", error=e.message)
        raise HTTPException(status_code=500, detail="Failed to fetch orders")


@app.get("/test")
def test_database(db: Optional[Database] = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    if db is not None:
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
        try:
            collections = db.list_collection_names()
            response["collections"] = collections[:10]
            response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if database.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 5000))
    logger.info("server_starting", url=f"http://localhost:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
