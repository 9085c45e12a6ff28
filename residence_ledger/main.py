"""
Residence Ledger: FastAPI Application.

This is the entry point for the application.
Logging is configured and all routers are registered here.
"""

from fastapi import FastAPI

from residence_ledger.config import get_settings
from residence_ledger.logging_config import configure_logging
from residence_ledger.api.health import router as health_router
from residence_ledger.api.accounts import router as accounts_router
from residence_ledger.api.ledger import router as ledger_router
from residence_ledger.api.reports import router as reports_router
from residence_ledger.api.debtors import router as debtors_router

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Double-entry ledger for residences: balance sheets and "
        "FIFO payment allocation"
    ),
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(ledger_router)
app.include_router(reports_router)
app.include_router(debtors_router)
