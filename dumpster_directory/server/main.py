"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware
(CORS, request logging), registers exception handlers and includes all API
routers. The business cache and the ZIP lookup live on ``app.state`` for the
lifetime of the process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dumpster_directory.core.cache import BusinessCache
from dumpster_directory.core.database.session import async_session_maker
from dumpster_directory.core.geo import ZipCodeLookup
from dumpster_directory.core.logging_config import get_logger, setup_logging
from dumpster_directory.core.monitoring import initialize_logfire

from .api.v1 import admin, auth, businesses, claims, customer, dealer_portal, health, quotes, stripe_webhook, zipcode
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import RequestLoggingMiddleware

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Loads the business cache and starts its refresh loop on startup, and
    stops it and closes the ZIP lookup client on shutdown. A cache that
    fails to load is retried by its refresh loop; requests fall back to the
    database meanwhile.
    """
    logger.info("Starting up Dumpster Directory Server...")
    cache = BusinessCache(async_session_maker, refresh_seconds=settings.cache.refresh_seconds)
    app.state.business_cache = cache
    app.state.zip_lookup = ZipCodeLookup(
        google_api_key=settings.geocoding.google_maps_api_key,
        timeout_seconds=settings.geocoding.timeout_seconds,
    )
    await cache.start()

    yield

    logger.info("Shutting down Dumpster Directory Server...")
    await cache.stop()
    await app.state.zip_lookup.aclose()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    Dumpster Directory API

    This API backs a dumpster rental directory and lead marketplace. It serves
    the public directory, takes quote requests and distributes them to
    businesses, runs the dealer portal with paid lead reveals, handles listing
    claims and Stripe billing, and offers administration tools.
    """,
    version="0.1.0",
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
cors = settings.cors
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors.origins,
    allow_credentials=cors.allow_credentials,
    allow_methods=cors.allow_methods,
    allow_headers=cors.allow_headers,
)
app.add_middleware(RequestLoggingMiddleware)

setup_exception_handlers(app)
initialize_logfire(app)

API = constant.API_V1_STR
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix=f"{API}/auth", tags=["auth"])
app.include_router(businesses.router, prefix=f"{API}/businesses", tags=["businesses"])
app.include_router(quotes.router, prefix=f"{API}/quotes", tags=["quotes"])
app.include_router(customer.router, prefix=f"{API}/customer", tags=["customer"])
app.include_router(dealer_portal.router, prefix=f"{API}/dealer-portal", tags=["dealer-portal"])
app.include_router(claims.router, prefix=f"{API}/claim", tags=["claims"])
app.include_router(claims.admin_router, prefix=f"{API}/admin/claim-campaigns", tags=["admin"])
app.include_router(admin.router, prefix=f"{API}/admin", tags=["admin"])
app.include_router(stripe_webhook.router, prefix=f"{API}/stripe/webhook", tags=["stripe"])
app.include_router(stripe_webhook.router, prefix=f"{API}/webhooks/stripe", tags=["stripe"])
app.include_router(zipcode.router, prefix=f"{API}/zipcode", tags=["geo"])
