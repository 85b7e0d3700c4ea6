"""
N.O.V.A CHAT CLIENT - Terminal chat over the streaming relay
============================================================

PURPOSE:
This is a command-line client for the N.O.V.A relay. It sends each message to
POST /chat/stream and prints the reply as it streams in, using the same
StreamConsumer a GUI front-end would use.

USAGE:
    python chat_cli.py

    Make sure the server is running first: python run.py

COMMANDS:
    /agents        - List available agents
    /agent <id>    - Switch agent (e.g. /agent researcher); unknown ids use the default
    /clear         - Start a new conversation
    /quit or /exit - Exit

Ctrl-C while a reply is streaming cancels it and exits.
"""

import asyncio

from config import RELAY_URL
from nova_relay.models import InProgressMessage, MessageState
from nova_relay.services.agent_profiles import list_agent_profiles
from nova_relay.services.stream_consumer import StreamConsumer


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header(consumer: StreamConsumer):
    print("\n" + "=" * 60)
    print("N.O.V.A - Streaming Chat")
    print("=" * 60)
    print(f"\nRelay: {RELAY_URL}")
    print(f"Agent: {consumer.agent.name} ({consumer.agent.key})")
    print("\nCommands:")
    print("  /agents - List agents")
    print("  /agent <id> - Switch agent")
    print("  /clear - Start new conversation")
    print("  /quit - Exit")
    print("=" * 60 + "\n")


def print_agents():
    for profile in list_agent_profiles():
        aliases = ", ".join(profile.aliases)
        print(f"  {profile.key:<16} {profile.name:<18} {int(profile.max_response_time)}s  [{aliases}]")


class ReplyPrinter:
    """on_update callback: prints only the text that is new since the last snapshot."""

    def __init__(self):
        self.printed = 0

    def __call__(self, snapshot: InProgressMessage):
        print(snapshot.content[self.printed:], end="", flush=True)
        self.printed = len(snapshot.content)
        if not snapshot.is_streaming:
            if snapshot.state == MessageState.TIMED_OUT:
                print(f"\n[{snapshot.error}]", end="")
            print()


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

async def main():
    printer = ReplyPrinter()
    async with StreamConsumer(RELAY_URL, on_update=printer) as consumer:
        print_header(consumer)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
            except EOFError:
                print("\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input in ("/quit", "/exit"):
                print("\nGoodbye!")
                break
            if user_input == "/agents":
                print_agents()
                continue
            if user_input.startswith("/agent"):
                consumer.use_agent(user_input[len("/agent"):].strip() or None)
                print(f"Switched to {consumer.agent.name}")
                continue
            if user_input == "/clear":
                consumer.clear()
                print("\nConversation cleared. Starting fresh!")
                continue
            if user_input.startswith("/"):
                print(f"Unknown command: {user_input}")
                continue

            printer.printed = 0
            print(f"{consumer.agent.name}: ", end="", flush=True)
            await consumer.send(user_input)


# Run the interactive loop when this file is executed (python chat_cli.py).
if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
