"""
Inbound SMS webhook.
"""
from fastapi import APIRouter, Depends

from textchain.core.dependencies import get_command_processor
from textchain.core.logging import get_correlation_id, get_logger
from textchain.schemas.inbound_sms import InboundSMS, SMSReply
from textchain.services.command_processor import CommandProcessor

router = APIRouter()
logger = get_logger(__name__)


@router.post("/sms/inbound", response_model=SMSReply)
async def receive_sms(
    sms: InboundSMS,
    processor: CommandProcessor = Depends(get_command_processor),
) -> SMSReply:
    """
    Interpret one inbound SMS and return the reply to send back.

    Delivery of the reply is left to the transport that called us.
    """
    command, reply = await processor.handle(sms.phone_number, sms.content)
    logger.info("Inbound SMS answered", command=command.kind, reply_length=len(reply))

    return SMSReply(
        reply=reply,
        command=command.kind,
        correlation_id=get_correlation_id(),
    )
