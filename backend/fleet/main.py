# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet.core import config
from fleet.core.errors import install_error_handlers
from fleet.core.log import configure_logging
from fleet.db.mongo import ensure_indexes
from fleet.routers import auth, dashboard, drivers, jobs, tracking, users, vehicles, ws

configure_logging()

# -----------------------------
# App + CORS
# -----------------------------
app = FastAPI(title="Fleet Dispatch API")

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=config.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

for r in (auth, users, drivers, tracking, vehicles, jobs, dashboard, ws):
    app.include_router(r.router)


# -----------------------------
# Startup: indexes (safe)
# -----------------------------
@app.on_event("startup")
async def startup():
    await ensure_indexes()


# -----------------------------
# Basics
# -----------------------------
@app.get("/")
async def root():
    return {"message": "API is running. Go to /docs"}

@app.get("/health")
async def health():
    return {"ok": True}
