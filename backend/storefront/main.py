"""
# `storefront/main.py` - application entry point

- FastAPI app with CORS from `settings.allowed_origins`.
- Routers:
  - `/api/v1/product/braintree` : gateway token + payment (order creation)
  - `/api/v1/auth`              : buyer orders; admin order list, status updates, delete
- Background job (APScheduler `AsyncIOScheduler`): `reconcile_settled_payments_once`
  every `RECONCILIATION_INTERVAL_MINUTES`, turning settled-but-unpersisted payments into orders.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import settings
from storefront.routers import orders, payments
from storefront.services.orders_sync import reconcile_settled_payments_once

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

scheduler = AsyncIOScheduler()

app = FastAPI(
    title="Storefront Checkout API",
    description="Cart checkout, Braintree settlement and order lifecycle.",
    version="1.0.0",
    debug=settings.debug,
    redirect_slashes=False,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments.router)
app.include_router(orders.router)
app.include_router(orders.admin_router)


@app.on_event("startup")
async def _startup_scheduler():
    if not settings.reconciliation_enabled:
        return
    if not scheduler.running:
        scheduler.start()
    scheduler.add_job(
        reconcile_settled_payments_once,
        "interval",
        minutes=settings.reconciliation_interval_minutes,
        id="payments-reconcile",
        replace_existing=True,
    )


@app.on_event("shutdown")
async def _shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=True)
