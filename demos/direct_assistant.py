#!/usr/bin/env python3
"""
Example: Using the RoomAssistant Directly

This example asks a few questions about the sample building in
``examples/rooms.json`` without starting the REST API.

Prerequisites:
    - An OpenAI-compatible endpoint; configure it with ROOMCHAT_LLM_BASE_URL,
      ROOMCHAT_LLM_MODEL and ROOMCHAT_LLM_API_KEY (or the Azure settings).

Usage:
    python demos/direct_assistant.py
"""

import asyncio
import logging
from pathlib import Path

from roomchat.config import get_settings
from roomchat.conversation.assistant import RoomAssistant
from roomchat.main import build_provider
from roomchat.rooms import load_dataset

ROOMS_FILE = Path(__file__).resolve().parent.parent / "examples" / "rooms.json"


async def main():
    """Demonstrate direct assistant usage."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s - %(levelname)s - %(message)s",
    )

    print("Initializing assistant...")
    assistant = RoomAssistant(
        provider=build_provider(get_settings()),
        dataset=load_dataset(ROOMS_FILE),
        on_select=lambda names: print(f"[viewer] select {list(names)}"),
    )

    queries = [
        "How many rooms are occupied on level 2?",
        "Which room has the highest CO2 level? Select it.",
        "What is the average temperature of available rooms?",
    ]

    print("\n" + "=" * 60)
    for query in queries:
        print(f"\nUser: {query}")
        reply = await assistant.ask(query)
        print(f"Assistant: {reply.text}")
        print("-" * 60)


if __name__ == "__main__":
    asyncio.run(main())
