import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pelangi.core.config import settings
from pelangi.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    PelangiError,
    ValidationError,
)
from pelangi.core.logging_middleware import LoggingMiddleware
from pelangi.db.init_db import init_db
from pelangi.routers.activities import router as activities_router
from pelangi.routers.assignments import router as assignments_router
from pelangi.routers.auth import router as auth_router
from pelangi.routers.challenges import router as challenges_router
from pelangi.routers.classes import router as classes_router
from pelangi.routers.gamification import router as gamification_router
from pelangi.routers.grades import router as grades_router
from pelangi.routers.students import router as students_router
from pelangi.routers.submissions import router as submissions_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# Middleware
app.add_middleware(LoggingMiddleware)

ERROR_STATUS = {
    ValidationError: 400,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    InternalError: 500,
}


@app.exception_handler(PelangiError)
async def domain_error_handler(request: Request, exc: PelangiError):
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)

    body = {"success": False, "message": exc.message}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    body = {"success": False, "message": first.get("msg", "Invalid request")}
    if loc:
        body["field"] = ".".join(loc)
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(classes_router, prefix="/classes", tags=["classes"])
app.include_router(students_router, prefix="/students", tags=["students"])
app.include_router(assignments_router, prefix="/assignments", tags=["assignments"])
app.include_router(submissions_router, prefix="/submissions", tags=["submissions"])
app.include_router(gamification_router, prefix="/gamification", tags=["gamification"])
app.include_router(challenges_router, prefix="/challenges", tags=["challenges"])
app.include_router(activities_router, prefix="/activities", tags=["activities"])

# Grades and attendance (no prefix, routes carry their own)
app.include_router(grades_router, tags=["grades"])
