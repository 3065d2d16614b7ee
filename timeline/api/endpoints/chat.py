"""Chat thread endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends
import logging

from timeline.api.deps import feature_required, get_chat_service
from timeline.schemas.chat import (
    ChatReply,
    SendMessageRequest,
    ThreadCreate,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadResponse
)
from timeline.security.auth import get_current_owner
from timeline.services.chat import ChatService
from timeline.services.feature_flags import CHAT

router = APIRouter(dependencies=[Depends(feature_required(CHAT))])
logger = logging.getLogger(__name__)


@router.post("/chat/threads", response_model=ThreadResponse, status_code=201)
async def create_thread(
    body: Optional[ThreadCreate] = None,
    owner_id: str = Depends(get_current_owner),
    chat: ChatService = Depends(get_chat_service)
):
    return chat.create_thread(owner_id, body.title if body else None)


@router.get("/chat/threads", response_model=ThreadListResponse)
async def list_threads(
    owner_id: str = Depends(get_current_owner),
    chat: ChatService = Depends(get_chat_service)
):
    threads = chat.list_threads(owner_id)
    return ThreadListResponse(threads=[ThreadResponse.model_validate(t) for t in threads])


@router.get("/chat/threads/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: str,
    owner_id: str = Depends(get_current_owner),
    chat: ChatService = Depends(get_chat_service)
):
    return ThreadDetailResponse.model_validate(chat.get_thread(owner_id, thread_id))


@router.post("/chat/threads/{thread_id}/messages", response_model=ChatReply)
async def send_message(
    thread_id: str,
    body: SendMessageRequest,
    owner_id: str = Depends(get_current_owner),
    chat: ChatService = Depends(get_chat_service)
):
    """Ask a question; the answer is grounded in the owner's embedded Drive content"""
    return await chat.send_message(owner_id, thread_id, body.content, body.limit)
