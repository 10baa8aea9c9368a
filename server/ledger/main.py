import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .accounting.exceptions import LedgerError
from .config import settings
from .routers import (
    auth,
    chart_of_accounts,
    health,
    journal_entries,
    numbering,
    period_locks,
    posting_templates,
    reports,
    users,
)

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("ledger").setLevel(settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.http_status >= 500:
        logger.error("Unhandled ledger error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(chart_of_accounts.router)
app.include_router(journal_entries.router)
app.include_router(posting_templates.router)
app.include_router(reports.router)
app.include_router(numbering.router)
app.include_router(period_locks.router)


@app.get("/")
def root():
    return {"status": "ok"}
