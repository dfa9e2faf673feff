"""
Chat turn orchestration.

A turn is a multi-step tool loop: the chat model streams a step, any tool
calls it makes are executed (creating or revising documents, requesting
suggestions), their results are fed back, and the model continues until it
answers without calling a tool or the step limit is reached. Everything a
turn produces flows through the stream context as deltas, and every step's
assistant message is persisted as soon as the step ends.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

from aichatbot.ai.models import REASONING_MODEL, TITLE_MODEL, ModelRegistry
from aichatbot.ai.prompts import TITLE_PROMPT, system_prompt
from aichatbot.ai.providers.base import ChatMessage, InferenceChunk
from aichatbot.artifacts import DocumentSnapshot, HandlerRegistry, SuggestionGenerator
from aichatbot.chat.tools import CHAT_TOOLS
from aichatbot.config import settings
from aichatbot.db import SessionScope
from aichatbot.db.repositories import DocumentRepository, MessageRepository
from aichatbot.exceptions import UnknownDocumentKind
from aichatbot.models.db import Message, MessageRole
from aichatbot.streaming.context import Producer, ResumableStreamContext
from aichatbot.streaming.deltas import Delta, DeltaEncoder, DeltaType

logger = logging.getLogger(__name__)

# Parts the model never sees again
_HIDDEN_PART_TYPES = {"reasoning", "file"}


def to_chat_messages(messages: list[Message]) -> list[ChatMessage]:
    """Convert persisted messages into provider-neutral chat history."""
    history = []
    for message in messages:
        parts = [p for p in message.parts if p.get("type") not in _HIDDEN_PART_TYPES]
        if not parts:
            continue
        history.append(ChatMessage(role=MessageRole(message.role).value, parts=parts))
    return history


class _StepRecorder:
    """Accumulates one step's output into persisted message parts."""

    def __init__(self) -> None:
        self.parts: list[dict[str, Any]] = []
        self.tool_calls: list[InferenceChunk] = []

    def add(self, chunk: InferenceChunk) -> None:
        if chunk.type in ("text", "reasoning") and chunk.text:
            last = self.parts[-1] if self.parts else None
            if last is not None and last["type"] == chunk.type:
                last["text"] += chunk.text
            else:
                self.parts.append({"type": chunk.type, "text": chunk.text})
        elif chunk.type == "tool-call":
            self.tool_calls.append(chunk)
            self.parts.append(
                {
                    "type": "tool-call",
                    "toolCallId": chunk.tool_call_id,
                    "toolName": chunk.tool_name,
                    "args": chunk.args,
                }
            )


class ChatOrchestrator:
    """Builds producers for chat turns and runs the chat tools."""

    def __init__(
        self,
        models: ModelRegistry,
        handlers: HandlerRegistry,
        suggestions: SuggestionGenerator,
        session_scope: SessionScope,
        max_steps: Optional[int] = None,
    ):
        self.models = models
        self.handlers = handlers
        self.suggestions = suggestions
        self.session_scope = session_scope
        self.max_steps = max_steps if max_steps is not None else settings.chat_max_steps

    async def generate_title(self, message: str) -> str:
        """Short conversation title from the first user message."""
        title = await self.models.get(TITLE_MODEL).complete_text(TITLE_PROMPT, message)
        title = title.strip().strip('"').replace(":", "")
        return title[:80] or "New chat"

    def build_producer(
        self,
        *,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID,
        history: list[ChatMessage],
        selected_model: str,
    ) -> Producer:
        """
        Create the producer for one chat turn.

        Args:
            conversation_id: Conversation the assistant messages belong to
            user_id: Owner of any documents and suggestions created
            history: Conversation so far, ending with the new user message
            selected_model: Chat model role name; the reasoning model gets
                no tools

        Returns:
            A producer to hand to the stream manager
        """
        model = self.models.get(selected_model)
        tools = None if selected_model == REASONING_MODEL else CHAT_TOOLS
        system = system_prompt(selected_model)

        async def produce(context: ResumableStreamContext) -> None:
            messages = list(history)
            for _ in range(self.max_steps):
                encoder = DeltaEncoder()
                recorder = _StepRecorder()
                try:
                    async for chunk in model.stream(system, messages, tools):
                        recorder.add(chunk)
                        for delta in encoder.encode(chunk):
                            context.write(delta)
                except asyncio.CancelledError:
                    if recorder.parts:
                        self._save(conversation_id, MessageRole.ASSISTANT, recorder.parts)
                    raise

                if recorder.parts:
                    self._save(conversation_id, MessageRole.ASSISTANT, recorder.parts)
                if not recorder.tool_calls:
                    return

                visible = [p for p in recorder.parts if p["type"] not in _HIDDEN_PART_TYPES]
                messages.append(ChatMessage(role="assistant", parts=visible))
                results = []
                for call in recorder.tool_calls:
                    result = await self.run_tool(call, context, user_id)
                    context.write(
                        Delta(
                            DeltaType.TOOL_RESULT,
                            {
                                "toolCallId": call.tool_call_id,
                                "toolName": call.tool_name,
                                "result": result,
                            },
                        )
                    )
                    results.append(
                        {
                            "type": "tool-result",
                            "toolCallId": call.tool_call_id,
                            "toolName": call.tool_name,
                            "result": result,
                        }
                    )
                self._save(conversation_id, MessageRole.TOOL, results)
                messages.append(ChatMessage(role="tool", parts=results))

            logger.info(
                f"Conversation {conversation_id} reached the step limit "
                f"({self.max_steps})"
            )

        return produce

    def _save(
        self,
        conversation_id: uuid.UUID,
        role: MessageRole,
        parts: list[dict[str, Any]],
    ) -> None:
        with self.session_scope() as session:
            MessageRepository(session).save_message(
                conversation_id=conversation_id, role=role, parts=parts
            )

    # Tools

    async def run_tool(
        self,
        call: InferenceChunk,
        context: ResumableStreamContext,
        user_id: uuid.UUID,
    ) -> dict[str, Any]:
        """
        Execute one tool call, streaming its deltas into the context.

        Problems the model can act on (unknown tool, unknown document, bad
        kind) come back as an ``error`` result instead of failing the turn.
        """
        args = call.args or {}
        logger.info(f"Running tool {call.tool_name} with {args}")

        if call.tool_name == "create_document":
            return await self._create_document(args, context, user_id)
        if call.tool_name == "update_document":
            return await self._update_document(args, context, user_id)
        if call.tool_name == "request_suggestions":
            return await self._request_suggestions(args, context, user_id)
        return {"error": f"Unknown tool: {call.tool_name}"}

    def _load_document(
        self, raw_id: Any, user_id: uuid.UUID
    ) -> Optional[DocumentSnapshot]:
        """Current version of a document the user owns, else None."""
        try:
            document_id = uuid.UUID(str(raw_id))
        except ValueError:
            return None
        with self.session_scope() as session:
            document = DocumentRepository(session).current_version(document_id)
            if document is None:
                return None
            if document.user_id != user_id:
                logger.warning(
                    f"User {user_id} referenced document {document_id} "
                    f"owned by another user"
                )
                return None
            return DocumentSnapshot.from_model(document)

    async def _create_document(
        self, args: dict[str, Any], context: ResumableStreamContext, user_id: uuid.UUID
    ) -> dict[str, Any]:
        title = args.get("title", "Untitled")
        kind = args.get("kind", "text")
        try:
            handler = self.handlers.get(kind)
        except UnknownDocumentKind as e:
            return {"error": str(e)}

        document_id = uuid.uuid4()
        await handler.create_document(
            document_id=document_id, title=title, sink=context, user_id=user_id
        )
        return {
            "id": str(document_id),
            "title": title,
            "kind": handler.kind.value,
            "content": "A document was created and is now visible to the user.",
        }

    async def _update_document(
        self, args: dict[str, Any], context: ResumableStreamContext, user_id: uuid.UUID
    ) -> dict[str, Any]:
        document = self._load_document(args.get("id"), user_id)
        if document is None:
            return {"error": "Document not found"}
        try:
            handler = self.handlers.get(document.kind)
        except UnknownDocumentKind as e:
            return {"error": str(e)}

        await handler.update_document(
            document=document,
            description=args.get("description", ""),
            sink=context,
            user_id=user_id,
        )
        return {
            "id": str(document.id),
            "title": document.title,
            "kind": document.kind.value,
            "content": "The document has been updated successfully.",
        }

    async def _request_suggestions(
        self, args: dict[str, Any], context: ResumableStreamContext, user_id: uuid.UUID
    ) -> dict[str, Any]:
        document = self._load_document(args.get("document_id"), user_id)
        if document is None or not document.content:
            return {"error": "Document not found"}

        await self.suggestions.request_suggestions(
            document=document, sink=context, user_id=user_id
        )
        return {
            "id": str(document.id),
            "title": document.title,
            "kind": document.kind.value,
            "message": "Suggestions have been added to the document",
        }
