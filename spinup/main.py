import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from spinup.api.middleware import RequestContextMiddleware
from spinup.api.templating import templates
from spinup.api.v1.router import v1_router
from spinup.common.logging import setup_logging
from spinup.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield


app = FastAPI(
    title="SpinUp Trello Sync API",
    description="Links SpinUp artifacts to Trello cards and keeps completion in sync",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

# API routes
app.include_router(v1_router, prefix="/api/v1")


# --- Page routes ---


@app.get("/teams/{team_id}/settings/trello", response_class=HTMLResponse)
async def trello_settings_page(
    request: Request,
    team_id: uuid.UUID,
    connected: str | None = Query(None),
    disconnected: str | None = Query(None),
    error: str | None = Query(None),
):
    return templates.TemplateResponse(
        request,
        "trello_settings.html",
        {
            "team_id": str(team_id),
            "connected": connected == "1",
            "disconnected": disconnected == "1",
            "error": error,
        },
    )


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "spinup-trello-sync",
        "version": "1.0.0",
        "env": settings.APP_ENV,
    }
