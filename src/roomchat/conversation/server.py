"""
HTTP server for RoomAssistant.

Exposes the assistant and the room snapshot over a small REST API so a web
front end (or curl) can ask questions and receive the rooms to highlight.

Endpoints
---------
POST   /chat          Answer one question.
GET    /levels        Sorted list of building levels.
GET    /rooms         Room names, optionally for one level (``?level=``).
GET    /health        Health / readiness check.

Usage (standalone)::

    from roomchat.conversation.assistant import RoomAssistant
    from roomchat.conversation.providers import OpenAICompatibleProvider
    from roomchat.conversation.server import create_app
    from roomchat.rooms import load_dataset
    import uvicorn

    assistant = RoomAssistant(
        provider=OpenAICompatibleProvider(model="gpt-4o-mini"),
        dataset=load_dataset("rooms.json"),
    )
    uvicorn.run(create_app(assistant), host="0.0.0.0", port=8765)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from roomchat.conversation.assistant import RoomAssistant

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """Body for POST /chat."""

    prompt: str = Field(..., min_length=1, description="The user's question.")


class ChatResponse(BaseModel):
    """Response body for POST /chat."""

    response_text: str = Field(..., description="Answer to show the user.")
    selected_rooms: list[str] = Field(
        default_factory=list,
        description="Rooms the assistant selected; the viewer should highlight them.",
    )
    failed: bool = Field(
        default=False,
        description="True when the assistant could not produce an answer.",
    )


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    assistant_name: str
    rooms: int


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(assistant: RoomAssistant) -> FastAPI:
    """Create a FastAPI application wrapping *assistant*.

    Returns:
        A configured ``FastAPI`` application ready to be served or used in
        tests via ``httpx.AsyncClient(transport=ASGITransport(app=app))``.
    """
    app = FastAPI(
        title="roomchat API",
        description="Ask natural-language questions about a building's rooms.",
        version="0.1.0",
    )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            assistant_name=assistant.name,
            rooms=len(assistant.dataset),
        )

    @app.get("/levels", response_model=list[str])
    async def levels() -> list[str]:
        return assistant.dataset.levels()

    @app.get("/rooms", response_model=list[str])
    async def rooms(level: str | None = None) -> list[str]:
        return sorted(assistant.dataset.names(level))

    @app.post("/chat", response_model=ChatResponse)
    async def chat(body: ChatRequest) -> ChatResponse:
        """Answer one question through the conversation loop.

        Raises:
            HTTPException 422: If the request body is malformed (FastAPI default).
            HTTPException 500: If an unexpected server error occurs.
        """
        logger.info("POST /chat: prompt=%r", body.prompt)
        try:
            reply = await assistant.ask(body.prompt)
        except Exception as exc:
            logger.error("Unexpected error in ask: %s", exc, exc_info=True)
            raise HTTPException(status_code=500, detail="Internal server error") from exc

        return ChatResponse(
            response_text=reply.text,
            selected_rooms=reply.selected_rooms,
            failed=reply.failed,
        )

    return app
