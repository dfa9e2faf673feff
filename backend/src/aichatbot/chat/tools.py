"""Tool schemas offered to the chat model."""

from aichatbot.ai.providers.base import ToolSpec
from aichatbot.models.db import DocumentKind

CREATE_DOCUMENT = ToolSpec(
    name="create_document",
    description=(
        "Create a document for writing or content creation activities. This "
        "tool will call other functions that will generate the contents of "
        "the document based on the title and kind."
    ),
    parameters={
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "kind": {"type": "string", "enum": [k.value for k in DocumentKind]},
        },
        "required": ["title", "kind"],
    },
)

UPDATE_DOCUMENT = ToolSpec(
    name="update_document",
    description="Update a document with the given description.",
    parameters={
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "The ID of the document to update"},
            "description": {
                "type": "string",
                "description": "The description of changes that need to be made",
            },
        },
        "required": ["id", "description"],
    },
)

REQUEST_SUGGESTIONS = ToolSpec(
    name="request_suggestions",
    description="Request suggestions for a document",
    parameters={
        "type": "object",
        "properties": {
            "document_id": {
                "type": "string",
                "description": "The ID of the document to request edits",
            },
        },
        "required": ["document_id"],
    },
)

CHAT_TOOLS = [CREATE_DOCUMENT, UPDATE_DOCUMENT, REQUEST_SUGGESTIONS]
