"""Internal disbursement trigger: split settled proceeds across payout accounts."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from paylink.dependencies import get_disbursement_client, require_admin
from paylink.models.payout import DisbursementRequest, PayoutResult
from paylink.services.disbursement import DisbursementClient
from paylink.utils.logger import logger

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("", response_model=PayoutResult)
async def trigger_disbursement(
    body: DisbursementRequest,
    client: DisbursementClient = Depends(get_disbursement_client),
) -> PayoutResult:
    logger.info("Disbursement requested", extra={"total": str(body.amount)})
    return await client.distribute(body.amount)
