"""REST API for outbound messages."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from sessionrelay import messages
from sessionrelay.session.models import SendReceipt
from sessionrelay.web.auth import require_token

router = APIRouter(tags=["messages"], dependencies=[Depends(require_token)])


class _Request(BaseModel):
    # Phone numbers and codes are often sent as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)


class SendMessage(_Request):
    to: str = Field(min_length=1)
    message: str = Field(min_length=1)


class SendSignature(_Request):
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1)
    doctor_name: str = Field(alias="doctorName", min_length=1)
    signature_url: str = Field(alias="signatureUrl", min_length=1)


class SendVerification(_Request):
    to: str = Field(min_length=1)
    code: str = Field(min_length=1)


def _sent(receipt: SendReceipt) -> dict:
    return {
        "success": True,
        "messageId": receipt.message_id,
        "timestamp": receipt.timestamp,
    }


@router.post("/send-message")
async def send_message(body: SendMessage, request: Request):
    receipt = await request.app.state.manager.send_message(body.to, body.message)
    return _sent(receipt)


@router.post("/send-signature")
async def send_signature(body: SendSignature, request: Request):
    text = messages.signature_request(body.doctor_name, body.signature_url)
    receipt = await request.app.state.manager.send_message(body.to, text)
    return _sent(receipt)


@router.post("/send-verification")
async def send_verification(body: SendVerification, request: Request):
    text = messages.verification_code(body.code)
    receipt = await request.app.state.manager.send_message(body.to, text)
    return _sent(receipt)
