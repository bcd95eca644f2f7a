"""
routers/chat.py

POST   /api/chat                                 → send a message to the tutor
POST   /api/chat/session                         → start a session (201)
GET    /api/chat/history/{sessionId}             → session history
PUT    /api/chat/session/{sessionId}/preferences → merge learner preferences
DELETE /api/chat/session/{sessionId}             → drop a session
"""

from typing import Optional

from fastapi import APIRouter, Depends

from bhasha.core.validators import (
    validate_preferences,
    validate_send_chat_message,
    validate_session_id,
    validate_start_chat_session,
)
from bhasha.models.request import ChatMessageRequest, ChatSessionRequest, PreferencesRequest
from bhasha.routers.deps import get_chat_service, verify_api_key
from bhasha.services.chat_service import ChatService
from bhasha.services.normalizer import success

router = APIRouter(prefix="/chat", tags=["chat"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def send_message(
    body: ChatMessageRequest,
    chat: ChatService = Depends(get_chat_service),
):
    req = validate_send_chat_message(
        body.message,
        body.session_id,
        language=body.language,
        message_type=body.message_type,
        subject=body.subject,
        context=body.context,
    ).unwrap()
    result = await chat.send_message(req)
    return success(result, "Message sent successfully")


@router.post("/session")
async def start_session(
    body: Optional[ChatSessionRequest] = None,
    chat: ChatService = Depends(get_chat_service),
):
    body = body or ChatSessionRequest()
    req = validate_start_chat_session(body.language, body.session_type, body.user_level).unwrap()
    result = await chat.start_session(req)
    return success(result, "Chat session started successfully", status_code=201)


@router.get("/history/{session_id}")
async def history(
    session_id: str,
    chat: ChatService = Depends(get_chat_service),
):
    session_id = validate_session_id(session_id).unwrap()
    result = await chat.get_history(session_id)
    return success(result, "Chat history retrieved successfully")


@router.put("/session/{session_id}/preferences")
async def update_preferences(
    session_id: str,
    body: PreferencesRequest,
    chat: ChatService = Depends(get_chat_service),
):
    session_id = validate_session_id(session_id).unwrap()
    preferences = validate_preferences(body.preferences).unwrap()
    result = await chat.update_preferences(session_id, preferences)
    return success(result, "Session preferences updated successfully")


@router.delete("/session/{session_id}")
async def delete_session(
    session_id: str,
    chat: ChatService = Depends(get_chat_service),
):
    session_id = validate_session_id(session_id).unwrap()
    result = await chat.delete_session(session_id)
    return success(result, "Chat session deleted successfully")
