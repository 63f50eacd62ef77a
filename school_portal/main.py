# school_portal/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from school_portal.core.database import ensure_indexes, get_db
from school_portal.core.exceptions import register_exception_handlers
from school_portal.core.logger import get_logger
from school_portal.core.permissions import seed_rbac
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.routes.audit_log_routes import router as audit_log_router
from school_portal.routes.auth_routes import router as auth_router
from school_portal.routes.department_routes import router as department_router
from school_portal.routes.evaluation_form_routes import router as evaluation_form_router
from school_portal.routes.evaluation_response_routes import router as evaluation_response_router
from school_portal.routes.ml_routes import router as ml_router
from school_portal.routes.performance_evaluation_routes import router as performance_evaluation_router
from school_portal.routes.personnel_routes import router as personnel_router
from school_portal.routes.role_routes import router as role_router
from school_portal.routes.settings_routes import router as settings_router
from school_portal.routes.subject_routes import router as subject_router
from school_portal.routes.user_routes import router as user_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = app.dependency_overrides.get(get_db, get_db)()
    ensure_indexes(database)
    seed_rbac(database)
    SettingsRepository(database).seed()
    logger.info("Default roles, permissions and settings are in place")
    yield


app = FastAPI(
    title="School Portal",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS (relaxed; tighten if needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/")
def root_index():
    return {"message": "School Portal API is running", "docs": "/docs"}


app.include_router(auth_router)
app.include_router(user_router)
app.include_router(role_router)
app.include_router(department_router)
app.include_router(personnel_router)
app.include_router(subject_router)
app.include_router(evaluation_form_router)
app.include_router(evaluation_response_router)
app.include_router(performance_evaluation_router)
app.include_router(audit_log_router)
app.include_router(ml_router)
app.include_router(settings_router)
