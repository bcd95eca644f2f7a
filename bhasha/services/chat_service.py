"""
services/chat_service.py

AI language tutor chat.

Flow per message:
  1. Load the session context (create on first message, 401 if expired)
  2. Ask the dialog engine for {reply, intent, confidence, parameters}
  3. Enrich subject replies, build follow-up suggestions
  4. Append to the context (≤ CHAT_HISTORY_LIMIT messages) and save

Steps 1–4 run under the session lock.
"""

import time
import uuid
from typing import Optional

from bhasha.core.config import settings
from bhasha.core.errors import SessionExpiredError, SessionNotFoundError
from bhasha.core.languages import LanguageTag
from bhasha.core.logger import get_logger
from bhasha.core.validators import ChatMessageInput, ChatSessionInput
from bhasha.models.response import (
    ChatHistory,
    ChatMessage,
    ChatReply,
    ChatReplyMetadata,
    ChatSessionInfo,
)
from bhasha.models.upstream import DialogReply, decode_dialog_reply
from bhasha.services.llm_service import llm_service
from bhasha.services.memory_service import SessionContext, SessionStore, session_store, utcnow

logger = get_logger(__name__)

PROMPT_HISTORY_TURNS = 6
ENRICH_MIN_CHARS = 100
LOW_CONFIDENCE = 0.6

SYSTEM_PROMPT = """You are Bhasha, a friendly AI language tutor for students learning English, Hindi and Punjabi.
Reply in {language}. The student's level is {level}. Session focus: {session_type}.
Keep explanations short, correct mistakes gently and give examples when useful.

Reply ONLY with a JSON object. No prose, no markdown fences.
{{"reply": "<what you say to the student>", "intent": "<short intent name>", "confidence": <0..1>, "parameters": {{}}}}

Intents: greeting | grammar_explanation | vocabulary | pronunciation_tip | exercise | translation_help | small_talk | fallback

Examples:
{{"intent":"greeting","reply":"Hello! What would you like to practise today?","confidence":0.95,"parameters":{{}}}}
{{"intent":"grammar_explanation","reply":"We use 'has' with he/she/it: 'She has a book.'","confidence":0.9,"parameters":{{"topic":"subject-verb agreement"}}}}"""

WELCOME_MESSAGES = {
    "en": "Hello! I'm your AI language tutor. How can I help you learn today?",
    "hi": "नमस्ते! मैं आपका एआई भाषा शिक्षक हूँ। आज मैं आपकी कैसे मदद कर सकता हूँ?",
    "pa": "ਸਤ ਸ੍ਰੀ ਅਕਾਲ! ਮੈਂ ਤੁਹਾਡਾ ਏਆਈ ਭਾਸ਼ਾ ਅਧਿਆਪਕ ਹਾਂ। ਅੱਜ ਮੈਂ ਤੁਹਾਡੀ ਕਿਵੇਂ ਮਦਦ ਕਰ ਸਕਦਾ ਹਾਂ?",
}

# Used when the model answers with JSON but no reply text
EMPTY_REPLY_MESSAGES = {
    "en": "Sorry, I didn't quite get that. Could you rephrase your question?",
    "hi": "माफ़ कीजिए, मैं ठीक से समझ नहीं पाया। क्या आप अपना प्रश्न दूसरे शब्दों में पूछ सकते हैं?",
    "pa": "ਮਾਫ਼ ਕਰਨਾ, ਮੈਂ ਚੰਗੀ ਤਰ੍ਹਾਂ ਸਮਝ ਨਹੀਂ ਸਕਿਆ। ਕੀ ਤੁਸੀਂ ਆਪਣਾ ਸਵਾਲ ਹੋਰ ਸ਼ਬਦਾਂ ਵਿੱਚ ਪੁੱਛ ਸਕਦੇ ਹੋ?",
}

SUGGESTED_QUESTIONS = {
    "general": [
        "Can you help me improve my writing?",
        "What are common mistakes learners make?",
        "Give me a short exercise for my level",
    ],
    "grammar_focused": [
        "When do I use 'a', 'an' and 'the'?",
        "Explain the difference between past simple and present perfect",
        "Check this sentence for grammar mistakes",
    ],
    "pronunciation_focused": [
        "How do I pronounce difficult sounds?",
        "Give me a tongue twister to practise",
        "Which words do learners often mispronounce?",
    ],
    "writing_help": [
        "How do I structure an essay?",
        "Help me write a formal letter",
        "How can I make my sentences clearer?",
    ],
}

CAPABILITIES = {
    "general": ["conversation", "grammar_help", "vocabulary", "exercises"],
    "grammar_focused": ["grammar_help", "error_explanation", "exercises"],
    "pronunciation_focused": ["pronunciation_tips", "phonetics", "speaking_practice"],
    "writing_help": ["writing_feedback", "style_improvement", "grammar_help"],
}

SUGGESTED_ACTIONS = {
    "text": [],
    "grammar_question": ["Check your own sentence with the grammar checker"],
    "pronunciation_help": ["Record yourself and get a pronunciation evaluation"],
    "exercise_request": ["Ask for a harder exercise", "Ask for the answers with explanations"],
}


ENRICH_FOOTER = "\n\n💡 *Need more help with this topic? Just ask!*"


def _enrich_header(subject: str) -> str:
    return f"📚 **{subject.upper()}**\n\n"


def enrich_reply(reply: str, subject: Optional[str]) -> str:
    if subject and len(reply) > ENRICH_MIN_CHARS:
        return f"{_enrich_header(subject)}{reply}{ENRICH_FOOTER}"
    return reply


def plain_reply(message: ChatMessage) -> str:
    """The reply as the model wrote it, without the subject template."""
    text = message.bot_response
    if message.subject:
        header = _enrich_header(message.subject)
        if text.startswith(header) and text.endswith(ENRICH_FOOTER):
            return text[len(header):-len(ENRICH_FOOTER)]
    return text


def follow_up_questions(confidence: float, subject: Optional[str]) -> list[str]:
    suggestions = []
    if confidence < LOW_CONFIDENCE:
        suggestions.append("Try rephrasing your question for better understanding")
    if subject:
        suggestions.append(f"Ask about related {subject} topics")
        suggestions.append(f"Request practice problems in {subject}")
    suggestions.append("Ask for examples or step-by-step explanations")
    return suggestions


def build_query(message: str, subject: Optional[str], user_level: str) -> str:
    query = message
    if subject:
        query = f"[Subject: {subject}] {query}"
    if user_level != "intermediate":
        query = f"[Level: {user_level}] {query}"
    return query


def history_turns(context: SessionContext, turns: int = PROMPT_HISTORY_TURNS) -> list[dict]:
    history: list[dict] = []
    for m in context.messages[-turns:]:
        history.append({"role": "user", "content": m.user_message})
        history.append({"role": "assistant", "content": plain_reply(m)})
    return history


class ChatService:
    def __init__(self, store: SessionStore):
        self.store = store

    def _new_context(
        self,
        session_id: str,
        language: LanguageTag,
        session_type: str = "general",
        user_level: str = "intermediate",
    ) -> SessionContext:
        context = SessionContext(
            session_id=session_id,
            language=language.short_code,
            session_type=session_type,
            user_level=user_level,
        )
        context.touch(settings.SESSION_TTL_SECONDS)
        return context

    async def _ask(self, req: ChatMessageInput, context: SessionContext) -> DialogReply:
        raw = await llm_service.complete(
            SYSTEM_PROMPT.format(
                language=req.language.display_name,
                level=context.user_level,
                session_type=context.session_type,
            ),
            build_query(req.message, req.subject, context.user_level),
            history=history_turns(context),
            max_tokens=settings.CHAT_MAX_TOKENS,
            temperature=settings.CHAT_TEMPERATURE,
            service="Chat service",
            rejected_message="Message contains inappropriate content and cannot be processed",
        )
        data = llm_service.parse_json_object(raw)
        if data is None:
            return DialogReply(reply=raw[:2000])
        dialog = decode_dialog_reply(data)
        if not dialog.reply:
            logger.warning(f"[{req.session_id}] Dialog reply had no text, using default")
            dialog.reply = EMPTY_REPLY_MESSAGES[req.language.short_code]
        return dialog

    async def start_session(self, req: ChatSessionInput) -> ChatSessionInfo:
        session_id = f"session-{uuid.uuid4()}"
        context = self._new_context(session_id, req.language, req.session_type, req.user_level)
        await self.store.save(context)

        logger.info(f"[{session_id}] Session started lang={req.language.short_code} type={req.session_type}")
        return ChatSessionInfo(
            session_id=session_id,
            welcome_message=WELCOME_MESSAGES[req.language.short_code],
            language=req.language.short_code,
            session_type=req.session_type,
            user_level=req.user_level,
            suggested_questions=SUGGESTED_QUESTIONS[req.session_type],
            session_capabilities=CAPABILITIES[req.session_type],
            expires_at=context.expires_at,
        )

    async def send_message(self, req: ChatMessageInput) -> ChatReply:
        t0 = time.perf_counter()
        outcome: dict = {}

        async def apply(context: Optional[SessionContext]) -> SessionContext:
            if context is not None and context.is_expired():
                await self.store.drop(req.session_id)
                logger.info(f"[{req.session_id}] Session expired, context dropped")
                raise SessionExpiredError(req.session_id)
            if context is None:
                context = self._new_context(req.session_id, req.language)

            dialog = await self._ask(req, context)
            reply = enrich_reply(dialog.reply, req.subject)
            context.add_message(
                ChatMessage(
                    timestamp=utcnow(),
                    user_message=req.message,
                    bot_response=reply,
                    intent=dialog.intent,
                    confidence=dialog.confidence,
                    message_type=req.message_type,
                    subject=req.subject,
                ),
                settings.CHAT_HISTORY_LIMIT,
            )
            context.touch(settings.SESSION_TTL_SECONDS)
            outcome["dialog"] = dialog
            outcome["reply"] = reply
            return context

        context = await self.store.update(req.session_id, apply)
        dialog: DialogReply = outcome["dialog"]
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        logger.info(
            f"[{req.session_id}] Intent={dialog.intent} conf={dialog.confidence:.2f} "
            f"messages={len(context.messages)} [{elapsed_ms}ms]"
        )
        return ChatReply(
            bot_response=outcome["reply"],
            intent=dialog.intent,
            confidence=dialog.confidence,
            language=req.language.short_code,
            session_id=req.session_id,
            message_type=req.message_type,
            follow_up_questions=follow_up_questions(dialog.confidence, req.subject),
            suggested_actions=SUGGESTED_ACTIONS.get(req.message_type, []),
            metadata=ChatReplyMetadata(
                response_time=elapsed_ms,
                context_updated=True,
                message_count=len(context.messages),
                subjects=context.subjects,
            ),
        )

    async def get_history(self, session_id: str) -> ChatHistory:
        context = await self.store.get(session_id)
        if context is None:
            raise SessionNotFoundError(session_id)
        return ChatHistory(
            session_id=session_id,
            history=context.messages,
            total_messages=len(context.messages),
            subjects=context.subjects,
            preferences=context.preferences,
            start_time=context.start_time,
            last_activity=context.last_activity,
        )

    async def update_preferences(self, session_id: str, preferences: dict) -> dict:
        async def apply(context: Optional[SessionContext]) -> SessionContext:
            if context is None:
                raise SessionNotFoundError(session_id)
            context.preferences = {**context.preferences, **preferences}
            return context

        context = await self.store.update(session_id, apply)
        return {"sessionId": session_id, "preferences": context.preferences}

    async def delete_session(self, session_id: str) -> dict:
        if not await self.store.delete(session_id):
            raise SessionNotFoundError(session_id)
        logger.info(f"[{session_id}] Session deleted")
        return {"sessionId": session_id}


# Singleton
chat_service = ChatService(session_store)
