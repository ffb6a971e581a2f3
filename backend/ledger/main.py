import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .auth_utils import TokenService
from .config import Settings, settings as default_settings
from .errors import AuthenticationError, LedgerError
from .persistence import Persistence, get_persistence
from .schemas import (
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    CategoryCreate,
    CategoryResponse,
    HealthResponse,
    LoginRequest,
    LoginResponse,
    RecordCreate,
    RecordResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from .services import CategoryPolicy, IdentityService, RecordManager, UserService

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    identity: IdentityService
    users: UserService
    categories: CategoryPolicy
    records: RecordManager


def build_services(persistence: Persistence, config: Settings) -> AppServices:
    tokens = TokenService(config.jwt_secret, config.jwt_algorithm, config.jwt_expires_in)
    return AppServices(
        identity=IdentityService(persistence, tokens, config.password_hash_iterations),
        users=UserService(persistence),
        categories=CategoryPolicy(persistence),
        records=RecordManager(persistence),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def _token_from_header(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def current_user_id(
    authorization: str | None = Header(default=None),
    services: AppServices = Depends(get_services),
) -> int:
    return services.identity.verify(_token_from_header(authorization))


def _user_response(row: dict[str, Any]) -> UserResponse:
    return UserResponse(id=row["id"], name=row["name"], createdAt=row["created_at"])


def _category_response(row: dict[str, Any]) -> CategoryResponse:
    return CategoryResponse(id=row["id"], name=row["name"], isCustom=row["is_custom"], ownerId=row["owner_id"])


def _record_response(row: dict[str, Any]) -> RecordResponse:
    return RecordResponse(
        id=row["id"],
        userId=row["user_id"],
        categoryId=row["category_id"],
        amount=row["amount"],
        createdAt=row["created_at"],
    )


def build_error_response(status_code: int, code: str, message: str, details: list[ApiErrorDetail] | None = None) -> JSONResponse:
    payload = ApiErrorResponse(error=ApiErrorPayload(code=code, message=message, details=details or []))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    details = [ApiErrorDetail(**item) for item in exc.details]
    response = build_error_response(exc.status_code, exc.code, exc.message, details)
    if isinstance(exc, AuthenticationError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[ApiErrorDetail] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", []) if item not in ("body", "query", "path"))
        details.append(ApiErrorDetail(field=loc or "body", message=err.get("msg", "validation error")))
    return build_error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Validation failed", details)


public_router = APIRouter(prefix="/api")
router = APIRouter(prefix="/api", dependencies=[Depends(current_user_id)])


@public_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", ts=datetime.now(timezone.utc))


@public_router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def auth_register(payload: RegisterRequest, services: AppServices = Depends(get_services)) -> RegisterResponse:
    user, token = services.identity.register(payload.name, payload.password)
    return RegisterResponse(user=_user_response(user), accessToken=token)


@public_router.post("/auth/login", response_model=LoginResponse)
def auth_login(payload: LoginRequest, services: AppServices = Depends(get_services)) -> LoginResponse:
    return LoginResponse(accessToken=services.identity.login(payload.name, payload.password))


@router.get("/auth/me", response_model=UserResponse)
def auth_me(user_id: int = Depends(current_user_id), services: AppServices = Depends(get_services)) -> UserResponse:
    return _user_response(services.users.get_user(user_id))


@router.get("/users", response_model=list[UserResponse])
def list_users(services: AppServices = Depends(get_services)) -> list[UserResponse]:
    return [_user_response(row) for row in services.users.list_users()]


@router.get("/user/{user_id}", response_model=UserResponse)
def get_user(user_id: int, services: AppServices = Depends(get_services)) -> UserResponse:
    return _user_response(services.users.get_user(user_id))


@router.delete("/user/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    acting_id: int = Depends(current_user_id),
    services: AppServices = Depends(get_services),
) -> Response:
    services.users.delete_user(user_id, acting_user_id=acting_id)
    return Response(status_code=204)


@router.get("/category", response_model=list[CategoryResponse])
def list_categories(
    user_id: Optional[int] = Query(default=None),
    acting_id: int = Depends(current_user_id),
    services: AppServices = Depends(get_services),
) -> list[CategoryResponse]:
    rows = services.categories.list_visible(user_id, acting_user_id=acting_id)
    return [_category_response(row) for row in rows]


@router.get("/category/{category_id}", response_model=CategoryResponse)
def get_category(category_id: int, services: AppServices = Depends(get_services)) -> CategoryResponse:
    return _category_response(services.categories.get_category(category_id))


@router.post("/category", response_model=CategoryResponse, status_code=201)
def create_category(
    payload: CategoryCreate,
    acting_id: int = Depends(current_user_id),
    services: AppServices = Depends(get_services),
) -> CategoryResponse:
    row = services.categories.create_category(payload.name, payload.userId, acting_user_id=acting_id)
    return _category_response(row)


@router.delete("/category", status_code=204)
def delete_category(
    id: int = Query(),
    acting_id: int = Depends(current_user_id),
    services: AppServices = Depends(get_services),
) -> Response:
    services.categories.delete_category(id, acting_user_id=acting_id)
    return Response(status_code=204)


@router.get("/record", response_model=list[RecordResponse])
def list_records(
    user_id: Optional[int] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    services: AppServices = Depends(get_services),
) -> list[RecordResponse]:
    return [_record_response(row) for row in services.records.list(user_id=user_id, category_id=category_id)]


@router.get("/record/{record_id}", response_model=RecordResponse)
def get_record(record_id: int, services: AppServices = Depends(get_services)) -> RecordResponse:
    return _record_response(services.records.get(record_id))


@router.post("/record", response_model=RecordResponse, status_code=201)
def create_record(payload: RecordCreate, services: AppServices = Depends(get_services)) -> RecordResponse:
    return _record_response(services.records.create(payload.userId, payload.categoryId, payload.amount))


@router.delete("/record/{record_id}", status_code=204)
def delete_record(record_id: int, services: AppServices = Depends(get_services)) -> Response:
    services.records.delete(record_id)
    return Response(status_code=204)


def create_app(persistence: Persistence | None = None, config: Settings | None = None) -> FastAPI:
    config = config or default_settings
    logging.basicConfig(level=config.log_level)
    app = FastAPI(
        title="Spend Ledger API",
        version="0.1.0",
        description="Users, spending categories and expense records behind bearer-token auth.",
    )
    persistence = persistence or get_persistence(config)
    app.state.services = build_services(persistence, config)
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(public_router)
    app.include_router(router)
    logger.info("spend ledger api ready (persistence: %s)", type(persistence).__name__)
    return app


app = create_app()
