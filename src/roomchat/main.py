"""
roomchat - Main Entry Point.

Two commands:

- ``roomchat serve`` runs the REST API (see ``roomchat.conversation.server``).
- ``roomchat ask "How many rooms are occupied?"`` answers one question on
  the command line.

Both load the room snapshot from a JSON file (``--rooms`` or
``ROOMCHAT_ROOMS_FILE``) and talk to the model configured in ``Settings``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from roomchat.config import Settings, get_settings
from roomchat.conversation.assistant import RoomAssistant
from roomchat.conversation.providers import OpenAICompatibleProvider
from roomchat.rooms.dataset import RoomDataset, load_dataset

logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> OpenAICompatibleProvider:
    """Create the model provider described by *settings*.

    With ``azure_endpoint`` set, ``llm_api_key`` is used as the bearer token
    for the Azure deployment named by ``llm_model``.
    """
    if settings.azure_endpoint:
        token = settings.llm_api_key or ""

        async def token_provider() -> str:
            return token

        logger.info(
            "Using Azure OpenAI deployment %s at %s",
            settings.llm_model,
            settings.azure_endpoint,
        )
        return OpenAICompatibleProvider.azure(
            endpoint=settings.azure_endpoint,
            token_provider=token_provider,
            deployment=settings.llm_model,
            api_version=settings.azure_api_version,
            temperature=settings.llm_temperature,
        )

    logger.info("Using model %s at %s", settings.llm_model, settings.llm_base_url or "default endpoint")
    return OpenAICompatibleProvider(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        temperature=settings.llm_temperature,
    )


def build_assistant(settings: Settings) -> RoomAssistant:
    """Create a ``RoomAssistant`` with the configured provider and room data."""
    if settings.rooms_file:
        dataset = load_dataset(settings.rooms_file)
    else:
        logger.warning("No rooms file configured; starting with an empty dataset")
        dataset = RoomDataset()
    return RoomAssistant(
        provider=build_provider(settings),
        dataset=dataset,
        max_round_trips=settings.max_round_trips,
    )


async def serve(settings: Settings) -> None:
    """Run the REST API until interrupted."""
    import uvicorn

    from roomchat.conversation.server import create_app

    app = create_app(build_assistant(settings))
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    logger.info("Starting roomchat API on %s:%d", settings.host, settings.port)
    await uvicorn.Server(config).serve()


async def ask(settings: Settings, prompt: str) -> int:
    """Answer *prompt*, print the reply and return a process exit code."""
    reply = await build_assistant(settings).ask(prompt)
    print(reply.text)
    if reply.selected_rooms:
        print(f"Selected rooms: {', '.join(reply.selected_rooms)}")
    return 1 if reply.failed else 0


def cli_main(argv: list[str] | None = None) -> int:
    """Entry point for the roomchat console script."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Ask natural-language questions about a building's rooms"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--rooms",
        type=str,
        default=settings.rooms_file,
        help="JSON file with room data (default: $ROOMCHAT_ROOMS_FILE)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the REST API server")
    serve_parser.add_argument("--host", type=str, default=settings.host)
    serve_parser.add_argument("--port", type=int, default=settings.port)

    ask_parser = subparsers.add_parser("ask", help="Answer a single question")
    ask_parser.add_argument("prompt", help="The question to ask")

    args = parser.parse_args(argv)

    if args.debug:
        settings.log_level = "DEBUG"
    settings.rooms_file = args.rooms

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        settings.host = args.host
        settings.port = args.port
        asyncio.run(serve(settings))
        return 0
    return asyncio.run(ask(settings, args.prompt))


if __name__ == "__main__":
    raise SystemExit(cli_main())
