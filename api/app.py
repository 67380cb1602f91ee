import secrets
from contextlib import asynccontextmanager
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from achievements.models import ConversionResult
from core.errors import AuthenticationRequired, FailureKind, ValidationError
from core.logging_config import setup_logging
from ledger.models import CreditBalance, LedgerHistoryResponse, StepRecord
from redemption.models import (
    CancelRedemptionRequest,
    EligibilityResult,
    Redemption,
    RedemptionResult,
    RedemptionStats,
    RedemptionStatus,
    UseVoucherRequest,
    ValidateVoucherRequest,
    VoucherValidationResult,
)
from rewards.models import RewardCatalogEntry, RewardCategory

from .container import ServiceContainer
from .schemas import (
    AchievementListResponse,
    GuestLoginRequest,
    GuestLoginResponse,
    StepsRequest,
    User,
)

FAILURE_STATUS_CODES = {
    FailureKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    FailureKind.ELIGIBILITY: status.HTTP_409_CONFLICT,
    FailureKind.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    FailureKind.PARTNER_INTEGRATION: status.HTTP_502_BAD_GATEWAY,
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.AUTHENTICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    FailureKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

bearer = HTTPBearer(auto_error=False)
router = APIRouter()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_current_user(
    token: Optional[str] = Depends(get_token),
    container: ServiceContainer = Depends(get_container),
) -> User:
    try:
        return container.auth.current_user(token)
    except AuthenticationRequired as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_admin(
    token: Optional[str] = Depends(get_token),
    container: ServiceContainer = Depends(get_container),
) -> None:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    admin_token = container.settings.admin_token
    if admin_token is None or not secrets.compare_digest(token, admin_token.get_secret_value()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")


def _failure_response(result: RedemptionResult) -> JSONResponse:
    status_code = FAILURE_STATUS_CODES.get(result.failure_kind, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "ecocredit-rewards"}


@router.post("/auth/guest", response_model=GuestLoginResponse, tags=["Auth"])
def guest_login(request: GuestLoginRequest, container: ServiceContainer = Depends(get_container)):
    user, token = container.auth.guest_login(request.device_id)
    return GuestLoginResponse(token=token, user=user)


@router.post("/auth/logout", tags=["Auth"])
def logout(
    token: Optional[str] = Depends(get_token),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    container.auth.logout(token)
    return {"success": True}


@router.post("/steps", response_model=StepRecord, tags=["Activity"])
def submit_steps(
    request: StepsRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    try:
        return container.activity.submit_steps(user.id, request.steps, request.date)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/credits/convert", response_model=ConversionResult, tags=["Credits"])
def convert_steps(
    request: StepsRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    try:
        return container.activity.convert_steps(user.id, request.steps, request.date)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/credits/balance", response_model=CreditBalance, tags=["Credits"])
def credit_balance(user: User = Depends(get_current_user), container: ServiceContainer = Depends(get_container)):
    return container.redemptions.credit_balance(user.id)


@router.get("/credits/history", response_model=LedgerHistoryResponse, tags=["Credits"])
def credit_history(
    limit: int = 50,
    offset: int = 0,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    return container.ledger.history(user.id, limit, offset)


@router.get("/achievements", response_model=AchievementListResponse, tags=["Achievements"])
def list_achievements(user: User = Depends(get_current_user), container: ServiceContainer = Depends(get_container)):
    achievements = container.evaluator.achievements_for(user.id)
    return AchievementListResponse(achievements=achievements, total_count=len(achievements))


@router.get("/rewards", response_model=list[RewardCatalogEntry], tags=["Rewards"])
def list_rewards(category: Optional[RewardCategory] = None, container: ServiceContainer = Depends(get_container)):
    return container.catalog.list_available(category)


@router.get("/rewards/{reward_id}", response_model=RewardCatalogEntry, tags=["Rewards"])
def get_reward(reward_id: UUID, container: ServiceContainer = Depends(get_container)):
    reward = container.catalog.get_reward(reward_id)
    if reward is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Reward {reward_id} not found")
    return reward


@router.get("/rewards/{reward_id}/eligibility", response_model=EligibilityResult, tags=["Rewards"])
def check_eligibility(
    reward_id: UUID,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    return container.workflow.eligibility.check(user.id, reward_id)


@router.post("/rewards/{reward_id}/redeem", response_model=RedemptionResult, tags=["Redemptions"])
def redeem_reward(
    reward_id: UUID,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = container.redemptions.redeem(user.id, reward_id)
    if not result.success:
        return _failure_response(result)
    return result


@router.get("/redemptions/history", response_model=list[Redemption], tags=["Redemptions"])
def redemption_history(user: User = Depends(get_current_user), container: ServiceContainer = Depends(get_container)):
    return container.redemptions.redemption_history(user.id)


@router.get("/redemptions/vouchers", response_model=list[Redemption], tags=["Redemptions"])
def active_vouchers(user: User = Depends(get_current_user), container: ServiceContainer = Depends(get_container)):
    return container.redemptions.active_vouchers(user.id)


@router.get("/redemptions/stats", response_model=RedemptionStats, tags=["Redemptions"])
def redemption_stats(user: User = Depends(get_current_user), container: ServiceContainer = Depends(get_container)):
    return container.redemptions.redemption_stats(user.id)


@router.get("/redemptions/expiring", response_model=list[Redemption], tags=["Redemptions"])
def expiring_vouchers(
    days_ahead: Optional[int] = None,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    if days_ahead is None:
        days_ahead = container.settings.redemption.expiring_days_ahead
    return container.redemptions.expiring_vouchers(user.id, days_ahead)


@router.post("/redemptions/validate", response_model=VoucherValidationResult, tags=["Vouchers"])
def validate_voucher(request: ValidateVoucherRequest, container: ServiceContainer = Depends(get_container)):
    return container.redemptions.validate_voucher(request.voucher_code, request.partner)


@router.post("/redemptions/use", tags=["Vouchers"])
def use_voucher(request: UseVoucherRequest, container: ServiceContainer = Depends(get_container)):
    if not container.redemptions.use_voucher(request.voucher_code, request.partner_reference):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Voucher is invalid, used or expired")
    return {"success": True, "message": "Voucher marked as used"}


@router.get("/redemptions/{redemption_id}", response_model=Redemption, tags=["Redemptions"])
def get_redemption(
    redemption_id: UUID,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    redemption = container.redemptions.get_user_redemption(user.id, redemption_id)
    if redemption is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Redemption {redemption_id} not found")
    return redemption


@router.get("/admin/redemptions", response_model=list[Redemption], tags=["Admin"])
def redemptions_by_status(
    status_filter: RedemptionStatus = Query(..., alias="status"),
    _: None = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    return container.redemptions.by_status(status_filter)


@router.get("/admin/vouchers/{voucher_code}", response_model=Redemption, tags=["Admin"])
def redemption_for_voucher(
    voucher_code: str,
    _: None = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    redemption = container.redemptions.find_by_voucher_code(voucher_code)
    if redemption is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Voucher {voucher_code} not found")
    return redemption


@router.post("/admin/redemptions/{redemption_id}/cancel", response_model=RedemptionResult, tags=["Admin"])
def cancel_redemption(
    redemption_id: UUID,
    request: CancelRedemptionRequest,
    _: None = Depends(require_admin),
    container: ServiceContainer = Depends(get_container),
):
    result = container.redemptions.cancel(redemption_id, request.reason)
    if not result.success:
        return _failure_response(result)
    return result


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    container = container or ServiceContainer.build()
    settings = container.settings
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        container.workflow.shutdown()

    app = FastAPI(
        title=settings.project_name,
        description="Steps to eco-credits to partner rewards, with an append-only credit ledger",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix=settings.api_prefix)
    return app
