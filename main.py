"""
Voice concierge entry point.

The conversation core is transport-agnostic. This entry point offers two
ways to drive it:

    Event stream: python main.py events < events.jsonl
        Reads one JSON call event per line (call.started, transcript.final,
        call.ended, function.call, ...) and writes one JSON EventResult per
        line. A voice transport can pipe its webhooks through this.

    Console mode: python main.py console
        Starts the interactive console demo.
"""

import asyncio
import json
import logging
import sys

from concierge.agents.router import AgentRouter
from concierge.call_handler import CallEventHandler
from concierge.config import settings
from concierge.conversation.session_store import SessionStore

logger = logging.getLogger(__name__)


async def _run_event_stream() -> None:
    """Process newline-delimited JSON events from stdin."""
    store = SessionStore()
    store.start_sweeper()
    handler = CallEventHandler(store, AgentRouter.build(store))
    logger.info("%s ready for call events", settings.agent_name)

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Skipping line that is not JSON: %s", exc)
                continue
            result = await handler.handle_event(payload)
            sys.stdout.write(result.model_dump_json(exclude_none=True, exclude={"audio"}) + "\n")
            sys.stdout.flush()
    finally:
        await store.shutdown()


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    asyncio.run(session.run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        asyncio.run(_run_event_stream())
