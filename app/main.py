import logging

# Configure logging first
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.config import CORS_ORIGINS, EXPOSE_ERRORS
from app.core.error_handlers import (
    MarkupEngineError,
    build_error_payload,
    sanitize_error_message,
    status_code_for,
)
from app.pricing_intelligence.api.cost_records import router as cost_records_router
from app.pricing_intelligence.api.markups import router as markups_router
from app.pricing_intelligence.middleware import TimingMiddleware

app = FastAPI(
    title="Markup Engine API",
    description="Cost aggregation, ideal markup and suggested pricing for recipes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)


def custom_openapi():
    """OpenAPI schema with the bearer token security scheme."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=[
            {
                "name": "Markups",
                "description": "Markup blocks, cost selections, revenue history, publishing and price simulation"
            },
            {
                "name": "Cost Records",
                "description": "Fixed expenses, payroll entries and sales charges"
            },
        ]
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Include the token in the Authorization header as: Bearer <token>"
        }
    }
    openapi_schema["security"] = [{"bearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    expose_headers=["X-Process-Time"],
)

app.include_router(markups_router, prefix="/api")
app.include_router(cost_records_router, prefix="/api")
logger.info("✅ Markup and cost record API routes registered")


@app.on_event("startup")
async def create_indexes():
    """Create indexes for MongoDB collections on startup"""
    try:
        from app.pricing_intelligence.db.collections import (
            fixed_expenses_col,
            markups_col,
            payroll_entries_col,
            sales_charges_col,
            user_configurations_col,
        )

        await user_configurations_col.create_index([("user_id", 1), ("type", 1)], unique=True)
        logger.info("✅ User configuration indexes created successfully")

        for col in (fixed_expenses_col, payroll_entries_col, sales_charges_col):
            await col.create_index([("user_id", 1), ("active", 1), ("name", 1)])
        await payroll_entries_col.create_index([("user_id", 1), ("labor_type", 1)])
        logger.info("✅ Cost record indexes created successfully")

        await markups_col.create_index([("user_id", 1), ("block_id", 1)], unique=True)
        logger.info("✅ Markup snapshot indexes created successfully")
    except PyMongoError as e:
        # Startup continues; the indexes are created on the next start
        logger.warning(f"⚠️  Could not create indexes: {e}")


@app.get("/")
async def root():
    return {"message": "Markup Engine API. See /docs for the available endpoints."}


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "message": "Server is running",
        "endpoints": {
            "api_docs": "/docs",
            "markups": "/api/markups/blocks",
            "cost_records": "/api/cost-records/{record_set}"
        }
    }


@app.exception_handler(MarkupEngineError)
async def markup_engine_exception_handler(request: Request, exc: MarkupEngineError):
    logger.warning(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code_for(exc),
        content={**build_error_payload(exc, expose=EXPOSE_ERRORS), "path": str(request.url.path)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to catch all unhandled exceptions.
    Prevents stack traces from leaking to users.
    """
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {exc}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "error": type(exc).__name__,
            "detail": sanitize_error_message(exc, expose=EXPOSE_ERRORS),
            "path": str(request.url.path)
        }
    )
