# ================================
# FILE: main.py
# ================================
import sys, logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import RedirectResponse, JSONResponse

from floodhub.config import SHOW_DOCS

logging.basicConfig(stream=sys.stdout, level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(name).setLevel(logging.INFO)

from floodhub.database import Base, SessionLocal, engine
from floodhub import models  # noqa: F401  (registers tables on Base.metadata)
from floodhub.context import AppContext


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    ctx = AppContext(SessionLocal).init()
    app.state.ctx = ctx
    try:
        yield
    finally:
        ctx.close()


app = FastAPI(
    title="FloodResponseHub Backend",
    lifespan=lifespan,
    docs_url="/docs" if SHOW_DOCS else None,
    redoc_url=None,
    openapi_url="/openapi.json" if SHOW_DOCS else None,
)

from floodhub.routes_auth import router as auth_router
from floodhub.routes_requests import router as requests_router
from floodhub.routes_centers import router as centers_router
from floodhub.routes_alerts import router as alerts_router
from floodhub.routes_equipment import router as equipment_router
from floodhub.routes_admin import router as admin_router
from floodhub.routes_map import router as map_router
from floodhub.routes_realtime import router as realtime_router

app.include_router(auth_router)
app.include_router(requests_router)
app.include_router(centers_router)
app.include_router(alerts_router)
app.include_router(equipment_router)
app.include_router(admin_router)
app.include_router(map_router)
app.include_router(realtime_router)

@app.get("/healthz", tags=["ops"])
def healthz():
    status = {"ok": True, "db": False, "error": None}
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("select 1")
        status["db"] = True
    except Exception as e:
        status["error"] = str(e)
    return JSONResponse(status, headers={"Cache-Control": "no-store"})

@app.get("/ping", tags=["ops"])
def ping():
    return {"pong": True}


@app.get("/", include_in_schema=False)
def root():
    if SHOW_DOCS:
        return RedirectResponse(url="/docs", status_code=302)
    return JSONResponse({"ok": True, "service": "FloodResponseHub"}, headers={"Cache-Control": "no-store"})
