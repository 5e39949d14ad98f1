"""官网联系表单的提交记录"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field

from auth import sales_or_finance
from model import ContactSubmission
from schemas import ActionResult

logger = logging.getLogger(__name__)

# 提交表单是公开接口，其余接口需要登录
public_router = APIRouter()
router = APIRouter(dependencies=[Depends(sales_or_finance)])


class SubmissionIn(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: Optional[str] = None
    subject: str = Field(min_length=1)
    message: str = Field(min_length=10)


class ReadStatus(BaseModel):
    read: bool


@public_router.post("/", status_code=201)
async def submit_contact_form(submission: SubmissionIn, response: Response):
    try:
        row = await ContactSubmission.create(**submission.model_dump(mode="json"))
    except Exception:
        logger.exception("保存联系表单失败")
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Message sent successfully!", status_code=201, id=row.id).apply(response)


@router.get("/")
async def get_submissions(unread_only: bool = False):
    query = ContactSubmission.all()
    if unread_only:
        query = query.filter(read=False)
    return await query.order_by("-created_at").values()


@router.put("/{submission_id}/read")
async def update_read_status(submission_id: str, body: ReadStatus, response: Response):
    updated = await ContactSubmission.filter(id=submission_id).update(read=body.read)
    if not updated:
        return ActionResult.fail("Submission not found.", status_code=404).apply(response)
    return ActionResult.ok("Submission updated.", id=submission_id).apply(response)


@router.delete("/{submission_id}")
async def delete_submission(submission_id: str, response: Response):
    deleted = await ContactSubmission.filter(id=submission_id).delete()
    if not deleted:
        return ActionResult.fail("Submission not found.", status_code=404).apply(response)
    return ActionResult.ok("Message deleted successfully!").apply(response)
