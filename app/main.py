from __future__ import annotations

import logging
import os

from fastapi import FastAPI, HTTPException

from app.api.routers import asset, damage, identity, loan, maintenance
from app.infra.db import check_db_ready

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="asset-lifecycle",
    description="Asset status state machine with loan scheduling, damage and maintenance tracking.",
    version="0.1.0",
)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(asset.router, prefix="/api/assets", tags=["assets"])
app.include_router(loan.router, prefix="/api/loans", tags=["loans"])
app.include_router(damage.router, prefix="/api/damage-reports", tags=["damage-reports"])
app.include_router(maintenance.router, prefix="/api/maintenance-records", tags=["maintenance-records"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
