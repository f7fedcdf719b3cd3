"""
FastAPI application entry point.

This is the main application that ties together all components:
- The in-process ledger node (contracts, gateway)
- The event listener mirroring ledger events into the database
- API routes for drafts, signed submissions and VAT reporting
- Error handling and logging
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tunichain import __version__
from tunichain.api.routes import accounts, debug, health, invoices, payments, transactions, vat
from tunichain.config import get_settings
from tunichain.infrastructure.database import close_db, init_db
from tunichain.services.listener import EventListener
from tunichain.services.node import get_node, reset_node

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    
    Handles startup and shutdown tasks:
    - Initialize database tables
    - Deploy the ledger node
    - Start and stop the event listener
    """
    settings = get_settings()
    
    logger.info(f"Starting Tunichain v{__version__}")
    logger.info(f"Debug mode: {settings.debug}")
    
    # Initialize database
    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Continue anyway: the ledger works without its mirror
    
    node = get_node()
    logger.info(f"Ledger contracts: {node.deployment.addresses}")
    
    listener: EventListener | None = None
    listener_task: asyncio.Task | None = None
    if settings.listener_enabled:
        listener = EventListener(
            node.chain,
            poll_interval=settings.listener_poll_interval,
            batch_size=settings.listener_batch_size,
        )
        listener_task = asyncio.create_task(listener.run())
    
    yield  # Application runs here
    
    # Shutdown
    logger.info("Shutting down Tunichain")
    if listener and listener_task:
        listener.stop()
        await listener_task
    await close_db()
    reset_node()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = get_settings()
    
    app = FastAPI(
        title="Tunichain API",
        description=(
            "Permissioned invoicing, VAT accounting and payment settlement.\n\n"
            "Sellers and banks sign ledger transactions; the tax authority "
            "manages roles and follows per-seller VAT totals."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    
    # CORS configuration
    # In production, replace with specific allowed origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else ["https://tunichain.tn"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    # Register routers
    app.include_router(health.router)
    app.include_router(accounts.router, prefix="/api/v1")
    app.include_router(invoices.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(transactions.router, prefix="/api/v1")
    app.include_router(vat.router, prefix="/api/v1")
    
    # Debug router (only in debug mode)
    if settings.debug:
        app.include_router(debug.router, prefix="/api/v1")
    
    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")
        
        # Don't expose internal errors in production
        if settings.debug:
            detail = str(exc)
        else:
            detail = "An internal error occurred"
        
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": detail,
            },
        )
    
    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "tunichain.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
