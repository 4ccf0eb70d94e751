"""
HTTP API for Finance Tracker

A thin FastAPI layer over the orchestrator flows. All routes live under /api.

Every protected route depends on ``current_identity``, which runs the
IdentityGate explicitly before the handler body. Handlers only ever
pass that identity to the flows.

Legacy routes that name a user in the path (``/transactions/{user_id}``)
are kept for existing clients; they additionally require the path id to
equal the token identity and answer 401 when it does not.
"""

from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from financetracker.audit import create_correlation_id
from financetracker.auth import GateRejection, HashingFailure
from financetracker.config.settings import AppSettings
from financetracker.models.auth import (
    Identity,
    LoginResponse,
    LoginUser,
    RegisterResponse,
    RegisterUser,
)
from financetracker.models.ledger import (
    Budget,
    BudgetProgress,
    BudgetUpsert,
    NewTransaction,
    Transaction,
)
from financetracker.orchestrator import (
    AppComponents,
    CredentialMismatch,
    create_app_components,
)
from financetracker.services.storage import (
    DataIntegrityError,
    DuplicateError,
    SqlStorage,
    StorageError,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api")


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_correlation_id() -> UUID:
    # Resolved once per request; every dependency sees the same id
    return create_correlation_id()


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def current_identity(
    authorization: Optional[str] = Header(None),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> Identity:
    """Run the identity gate on the Authorization header."""
    try:
        return components.identity_gate.authenticate(authorization)
    except GateRejection as e:
        await components.audit_logger.log_token_rejected(
            rejection_kind=e.kind.value,
            reason=e.reason,
            correlation_id=correlation_id,
        )
        raise _unauthorized(e.message) from e


async def authorize_target(
    components: AppComponents,
    identity: Identity,
    target: Optional[UUID],
    correlation_id: UUID,
) -> Identity:
    """Reject when a request-supplied user id differs from the token identity."""
    try:
        return components.identity_gate.authorize_target(identity, target)
    except GateRejection as e:
        await components.audit_logger.log_identity_mismatch(
            user_id=identity,
            target_id=target,
            correlation_id=correlation_id,
        )
        raise _unauthorized(e.message) from e


# =============================================================================
# ROUTES
# =============================================================================

@router.get("/test", response_class=PlainTextResponse)
async def test_route() -> str:
    return "Test route is working!"


@router.post("/users/register", status_code=201, response_model=RegisterResponse)
async def register_user(
    payload: RegisterUser,
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> RegisterResponse:
    try:
        user_id = await components.account_flow.register(
            payload.username,
            payload.email,
            payload.password,
            correlation_id=correlation_id,
        )
    except DuplicateError as e:
        raise HTTPException(
            status_code=409,
            detail="Username or email already registered",
        ) from e
    return RegisterResponse(user_id=user_id)


@router.post("/users/login", response_model=LoginResponse)
async def user_login(
    payload: LoginUser,
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> LoginResponse:
    try:
        return await components.account_flow.login(
            payload.identifier,
            payload.password,
            correlation_id=correlation_id,
        )
    except CredentialMismatch as e:
        raise HTTPException(status_code=401, detail=str(e)) from e


@router.post("/transactions", status_code=201, response_model=Transaction)
async def add_transaction(
    payload: NewTransaction,
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> Transaction:
    await authorize_target(components, identity, payload.user_id, correlation_id)
    return await components.ledger_flow.add_transaction(
        identity, payload, correlation_id=correlation_id
    )


@router.get("/transactions", response_model=list[Transaction])
async def get_transactions(
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> list[Transaction]:
    return await components.ledger_flow.list_transactions(
        identity, correlation_id=correlation_id
    )


@router.get("/transactions/{user_id}", response_model=list[Transaction])
async def get_transactions_for_user(
    user_id: UUID,
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> list[Transaction]:
    await authorize_target(components, identity, user_id, correlation_id)
    return await components.ledger_flow.list_transactions(
        identity, correlation_id=correlation_id
    )


@router.post("/budgets", status_code=201, response_model=Budget)
async def upsert_budget(
    payload: BudgetUpsert,
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> Budget:
    await authorize_target(components, identity, payload.user_id, correlation_id)
    return await components.ledger_flow.upsert_budget(
        identity, payload, correlation_id=correlation_id
    )


@router.get("/budgets", response_model=list[Budget])
async def get_budgets(
    month: Optional[date] = Query(None),
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
) -> list[Budget]:
    return await components.ledger_flow.list_budgets(identity, month)


# Declared before /budgets/{user_id} so "progress" is not parsed as a user id
@router.get("/budgets/progress", response_model=list[BudgetProgress])
async def get_budget_progress(
    month: Optional[date] = Query(None),
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> list[BudgetProgress]:
    return await components.ledger_flow.budget_progress(
        identity, month, correlation_id=correlation_id
    )


@router.get("/budgets/{user_id}", response_model=list[Budget])
async def get_budgets_for_user(
    user_id: UUID,
    month: Optional[date] = Query(None),
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> list[Budget]:
    await authorize_target(components, identity, user_id, correlation_id)
    return await components.ledger_flow.list_budgets(identity, month)


@router.get("/budgets/{user_id}/progress", response_model=list[BudgetProgress])
async def get_budget_progress_for_user(
    user_id: UUID,
    month: Optional[date] = Query(None),
    identity: Identity = Depends(current_identity),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> list[BudgetProgress]:
    await authorize_target(components, identity, user_id, correlation_id)
    return await components.ledger_flow.budget_progress(
        identity, month, correlation_id=correlation_id
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

async def _data_integrity_handler(request: Request, exc: DataIntegrityError) -> JSONResponse:
    logger.error(
        "data_integrity_failure",
        path=request.url.path,
        error=str(exc),
        field=exc.field,
    )
    return JSONResponse(status_code=500, content={"detail": "Stored data is corrupt"})


async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    components: AppComponents = request.app.state.components
    await components.audit_logger.log_storage_error(
        error_message=str(exc),
        operation=f"{request.method} {request.url.path}",
    )
    return JSONResponse(status_code=500, content={"detail": "Storage unavailable"})


async def _hashing_failure_handler(request: Request, exc: HashingFailure) -> JSONResponse:
    components: AppComponents = request.app.state.components
    await components.audit_logger.log_error(
        error_type="hashing_failure",
        error_message=str(exc),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    components: Optional[AppComponents] = None,
    app_settings: Optional[AppSettings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Pre-built flows and storage (tests pass in-memory ones).
                    Built from environment settings when None.
        app_settings: Server settings; loaded from the environment when None.
    """
    app_settings = app_settings or AppSettings()
    components = components or create_app_components()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = components.storage
        if isinstance(storage, SqlStorage):
            await storage.check_connection()
            if app_settings.run_migrations:
                logger.info("creating_database_schema")
                await storage.create_schema()
        yield
        if isinstance(storage, SqlStorage):
            await storage.dispose()

    app = FastAPI(
        title="Finance Tracker",
        debug=app_settings.debug_mode,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DataIntegrityError, _data_integrity_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(HashingFailure, _hashing_failure_handler)

    app.include_router(router)
    return app
