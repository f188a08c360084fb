"""
Quality-control report routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from trademart.api.deps import get_qc_evaluator
from trademart.api.serializers import ok, qc_report_to_dict
from trademart.core.rbac import get_current_user_context
from trademart.services.qc_evaluator import QCEvaluator

router = APIRouter(prefix="/api/qc", tags=["Quality Control"])


class QCReportCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(..., alias="orderId")
    photos: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    score: float
    status: Optional[str] = None


@router.post("/reports", status_code=status.HTTP_201_CREATED)
async def submit_qc_report(
    data: QCReportCreate,
    user_context: dict = Depends(get_current_user_context),
    evaluator: QCEvaluator = Depends(get_qc_evaluator),
):
    """
    Submit a QC inspection for an order.

    A passing report marks the order delivered and releases its escrow; a
    failing one marks it disputed. The report is stored even when escrow
    release or notification delivery fails afterwards.
    """
    submission = evaluator.submit_report(
        user_context["user_id"],
        data.order_id,
        photos=data.photos,
        videos=data.videos,
        notes=data.notes,
        score=data.score,
        status=data.status,
    )
    body = qc_report_to_dict(submission.report)
    body["orderStatus"] = submission.order_status.value
    body["escrowRelease"] = submission.escrow_release.value if submission.escrow_release else None
    return ok(body)


@router.get("/reports")
async def list_qc_reports(
    order_id: int = Query(..., alias="orderId"),
    user_context: dict = Depends(get_current_user_context),
    evaluator: QCEvaluator = Depends(get_qc_evaluator),
):
    reports = evaluator.list_reports(user_context["user_id"], order_id)
    return ok([qc_report_to_dict(r) for r in reports])
