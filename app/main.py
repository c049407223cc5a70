import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.auth import AdminGate
from app.config import Settings, get_settings
from app.errors import UploaderError
from app.gist import GistClient
from app.intake import read_uploads
from app.logging_config import setup_logging
from app.models import AuthRequest, AuthResponse, TokenResponse, UploadResponse, ValidateResponse
from app.repository import TokenRepository
from app.tokens import TokenManager
from app.uploads import UploadOrchestrator

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, *, gist_transport: httpx.BaseTransport | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    repository = TokenRepository(settings.database_path)
    tokens = TokenManager(
        repository,
        ttl_seconds=settings.token_ttl_seconds,
        token_length=settings.token_length,
    )
    gists = GistClient(
        settings.github_token,
        api_url=settings.github_api_url,
        timeout=settings.github_timeout_seconds,
        description=settings.gist_description,
        preview_chars=settings.binary_preview_chars,
        transport=gist_transport,
    )
    orchestrator = UploadOrchestrator(tokens, gists)
    admin_gate = AdminGate(settings.admin_password)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        repository.init()
        for name in settings.missing_secrets():
            logger.warning("%s is not set; dependent operations will fail", name)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    def error_response(status_code: int, message: str, code: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item != "body")
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message, "bad_request")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        code_map = {
            400: "bad_request",
            401: "unauthorized",
            404: "not_found",
            413: "payload_too_large",
        }
        return error_response(exc.status_code, message, code_map.get(exc.status_code, "error"))

    @app.exception_handler(UploaderError)
    async def uploader_exception_handler(request: Request, exc: UploaderError):
        log = logger.error if exc.status_code >= 500 else logger.info
        route = request.scope.get("route")
        path = route.path if route else request.url.path
        log("%s %s failed with %s: %s", request.method, path, type(exc).__name__, exc)
        return error_response(exc.status_code, exc.public_message, exc.code)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env}

    @app.post("/api/auth", response_model=AuthResponse)
    def authenticate(payload: AuthRequest):
        if not admin_gate.verify(payload.password):
            logger.warning("Rejected admin login")
            raise HTTPException(status_code=401, detail="Invalid password")
        return AuthResponse(authenticated=True)

    @app.post("/api/tokens", response_model=TokenResponse, status_code=201)
    def issue_token(request: Request):
        record = tokens.issue()
        upload_url = str(request.base_url)[:-1] + f"/{record.token}"
        return TokenResponse(token=record.token, expires_at=record.expires_at, upload_url=upload_url)

    @app.get("/api/tokens/{token}/validate", response_model=ValidateResponse)
    def validate_token(token: str):
        return ValidateResponse(valid=tokens.validate(token))

    @app.post("/api/upload", response_model=UploadResponse)
    def upload_files(
        token: str = Form(...),
        files: list[UploadFile] = File(...),
        paths: list[str] = Form(default=[]),
        last_modified: list[int] = Form(default=[]),
    ):
        uploads = read_uploads(
            files,
            paths,
            last_modified,
            max_size_bytes=settings.max_upload_size_bytes,
            max_files=settings.max_files,
        )
        gist_url = orchestrator.upload(token, uploads)
        return UploadResponse(success=True, gist_url=gist_url)

    return app


app = create_app()
