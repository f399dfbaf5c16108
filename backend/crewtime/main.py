from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crewtime.core.config import settings
from crewtime.core.database import create_tables
from crewtime.core.logging import setup_logging
from crewtime.api.v1.crew_chief_permissions import router as crew_chief_permissions_router
from crewtime.api.v1.timesheets import router as timesheets_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Create tables on start-up (SQLite / local development)
    await create_tables()
    yield


app = FastAPI(
    title="CrewTime API",
    description="Crew chief permissions and timesheet rounding",
    version="1.0.0",
    lifespan=lifespan,
    # Swagger UI only in development – set DEBUG=false in production
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"

app.include_router(crew_chief_permissions_router, prefix=API_PREFIX)
app.include_router(timesheets_router, prefix=API_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "CrewTime API", "version": "1.0.0"}
