from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from app import config
from app.api import provision
from app.api.utils import register_exception_handlers
from app.logging_config import configure_logging

configure_logging()

app = FastAPI(
    title="Stackpress",
    description="Service for provisioning WordPress + MySQL stacks on Kubernetes",
    version="0.1.0",
)

app.include_router(provision.router)

register_exception_handlers(app)

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=config.port(), log_level="info")
