"""
Offline console demo: drives the conversation core through the same event
handler a voice transport would use.

No speech vendor, no CRM, no network calls. The mock CRM records writes in
memory and the availability board is generated from the configured seed.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario menu
"""

import argparse
import asyncio
import uuid

from concierge.agents.router import AgentRouter
from concierge.call_handler import CallEventHandler
from concierge.config import settings
from concierge.conversation.selectors import describe
from concierge.conversation.session_store import SessionStore
from concierge.tools.crm import MockCRMService

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """One simulated call in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "lead": [
            "I'd like information about your private dining",
            "My name is Test User and email is test@example.com",
            "I'm interested in hosting a rehearsal dinner for 30 guests",
            "no thanks, that's all",
        ],
        "booking": [
            "I would like to make a reservation for 4 people tonight at 7 PM",
            "The name is Sarah Johnson",
            "yes",
            "Great, that's all. Thank you!",
        ],
        "menu": [
            "What are today's specials?",
            "Can you say those again?",
            "Do you have anything vegetarian?",
            "How much are the desserts?",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self) -> None:
        self.store = SessionStore()
        self.crm = MockCRMService()
        self.router = AgentRouter.build(self.store, crm=self.crm)
        self.handler = CallEventHandler(self.store, self.router)
        self.call_id = f"console-{uuid.uuid4().hex[:8]}"

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Concierge]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  VOICE CONCIERGE - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def _start(self) -> None:
        result = await self.handler.handle_event({"type": "call.started", "call_id": self.call_id})
        self.agent_say(result.response or "")

    async def _say(self, text: str) -> bool:
        """Send one caller line. Returns False once the call is over."""
        result = await self.handler.handle_event(
            {"type": "transcript.final", "call_id": self.call_id, "text": text}
        )
        if result.error:
            print(f"{RED}{result.error}{RESET}")
            return False
        self.agent_say(result.response or "")
        session = self.store.get(self.call_id)
        if session is not None:
            state = describe(session)
            self.system_log(f"Intent: {state['intent']}  Collected: {state['collected']}")
            if state["crm_actions"]:
                self.system_log(f"CRM actions: {state['crm_actions']}")
        return True

    async def _finish(self) -> None:
        await self.handler.handle_event({"type": "call.ended", "call_id": self.call_id})
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{DIM}  Store stats: {self.store.get_stats()}{RESET}")
        print(f"{DIM}  CRM contacts: {len(self.crm.contacts)}  deals: {len(self.crm.deals)}  "
              f"reservations: {len(self.crm.reservations)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        await self._start()
        for step in steps:
            print(f"\n{BLUE}[Caller] {RESET}{step}")
            if not await self._say(step):
                break
        await self._finish()

    async def run(self) -> None:
        self._banner("Console Demo (type 'quit' to exit)")
        await self._start()
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Caller] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            if not await self._say(user_input):
                break
        await self._finish()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
