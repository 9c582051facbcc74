"""Credit endpoints: balance, client-reported awards, admin grants."""

import structlog
from fastapi import APIRouter, Depends

from src.api.auth import verify_api_key
from src.api.dependencies import get_current_user, get_ledger
from src.api.models import (
    AwardRequest,
    CreditBalanceResponse,
    CreditResultResponse,
    ErrorResponse,
    GrantRequest,
    GrantResponse,
)
from src.engagement.ledger import CreditLedger
from src.engagement.schemas import Principal

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/credits",
    response_model=CreditBalanceResponse,
    summary="Credit balance and history",
)
async def get_credits(
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditBalanceResponse:
    balance = await ledger.balance(principal.user_id)
    return CreditBalanceResponse.from_balance(balance)


@router.post(
    "/credits/award",
    response_model=CreditResultResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Feed item not found"},
        422: {"model": ErrorResponse, "description": "Invalid action"},
    },
    summary="Award credits for an interaction",
    description=(
        "Credits save (2), share (3) or report (1) for a feed item. Each "
        "(action, user, feed) is credited at most once; repeats return credited=0."
    ),
)
async def award_credits(
    request: AwardRequest,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditResultResponse:
    result = await ledger.award(principal.user_id, request.action, request.feed_id)
    return CreditResultResponse.from_result(result)


@router.post(
    "/credits/grant",
    response_model=GrantResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Admin privilege required"},
        404: {"model": ErrorResponse, "description": "Target user not found"},
        422: {"model": ErrorResponse, "description": "Invalid amount or reason"},
    },
    summary="Grant credits to a user (admin)",
)
async def grant_credits(
    request: GrantRequest,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> GrantResponse:
    result = await ledger.admin_grant(principal, request.user_id, request.amount, request.reason)
    return GrantResponse(user_id=request.user_id, amount=result.amount, total=result.new_total)
