from __future__ import annotations
from typing import Optional
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from . import __version__
from .config_store import ServerConfigStore
from .errors import AstroboaError
from .host import Host, detect_host
from .process_control import ProcessController
from .process_runner import ProcessRunner
from .settings import Settings

class ActionResult(BaseModel):
    ok: bool
    detail: str | None = None
    data: dict | None = None

class StartRequest(BaseModel):
    jvm_options: str | None = None

def create_app(settings: Settings, host: Optional[Host] = None) -> FastAPI:
    app = FastAPI(title="Astroboa Server API", version=__version__)
    host = host or detect_host(settings)
    ctl = ProcessController(ServerConfigStore.for_host(host), host, ProcessRunner(timeout=settings.command_timeout))

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/status", response_model=ActionResult)
    def status():
        ctl.runner.reap()
        try:
            return ActionResult(ok=True, data=ctl.check().to_dict())
        except AstroboaError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/start", response_model=ActionResult)
    def start(req: StartRequest | None = None):
        try:
            pid = ctl.start(jvm_options=req.jvm_options if req else None)
        except AstroboaError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return ActionResult(ok=True, detail="starting", data={"pid": pid})

    @app.post("/stop", response_model=ActionResult)
    def stop():
        try:
            ctl.stop()
        except AstroboaError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return ActionResult(ok=True, detail="stopped")

    return app
