from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from setupflow.api.routes import router, public_router
from setupflow.core.errors import StageConflictError, UnknownFieldError, WorkflowError, WorkflowNotFound
from setupflow.observability.logging import log
from setupflow.provider.stripe_client import aclose_client
from setupflow.settings import settings


@asynccontextmanager
async def lifespan(_app: FastAPI):
    log(
        event="boot",
        publishableKeyConfigured=bool(settings.STRIPE_PUBLISHABLE_KEY),
        returnUrl=settings.return_url,
    )
    if not settings.STRIPE_PUBLISHABLE_KEY:
        # Detail stages will never report the widget as ready
        print("[boot][WARN] STRIPE_PUBLISHABLE_KEY is empty; confirmation is disabled.")
    yield
    await aclose_client()


app = FastAPI(title="Setup Intent Confirmation API", lifespan=lifespan)

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(public_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Setup confirmation API is running. Start with POST /workflows.",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


_WORKFLOW_ERROR_STATUS = {
    WorkflowNotFound: 404,
    StageConflictError: 409,
    UnknownFieldError: 422,
}


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    status_code = _WORKFLOW_ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status_code, content={"status": "error", "detail": str(exc)})


# Anything else still gets a stable JSON envelope instead of a bare 500 page.
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(event="unhandled_exception", path=request.url.path, errorType=type(exc).__name__, error=str(exc)[:300])
    return JSONResponse(
        status_code=500,
        content={"status": "error", "detail": "An unexpected error occurred"},
    )
