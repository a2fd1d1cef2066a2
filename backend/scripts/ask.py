#!/usr/bin/env python3
"""Interactive terminal client for the AskAussie chat API.

Streams each answer as it is generated. Press Ctrl+C while an answer is
streaming to stop it (the partial answer is discarded); type "exit" or
press Ctrl+D to quit. History lives only for the session.

Usage:
    # Against a local server
    python scripts/ask.py

    # One-shot question against another host
    python scripts/ask.py --url http://api.example.com "What does section 51 cover?"
"""

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from askaussie.client import AskAussieClient, ChatReply
from askaussie.streaming.cancellation import CancellationToken
from askaussie.streaming.consumer import ChatTranscript, ReplyStatus


def _print_delta(delta: str) -> None:
    print(delta, end="", flush=True)


async def ask_once(client: AskAussieClient, transcript: ChatTranscript, question: str) -> ChatReply:
    """Ask one question, letting Ctrl+C cancel the stream."""
    loop = asyncio.get_running_loop()
    token = CancellationToken()

    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    try:
        reply = await client.ask(transcript, question, token=token, on_delta=_print_delta)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)

    print()
    if reply.status is ReplyStatus.ABORTED:
        print("[stopped]")
    elif reply.status is ReplyStatus.FAILED:
        print(reply.content)
    if reply.relevant_sections:
        print(f"[sections: {', '.join(reply.relevant_sections)}]")
    return reply


async def main(url: str, question: str | None) -> int:
    transcript = ChatTranscript()

    async with AskAussieClient(base_url=url) as client:
        if question:
            reply = await ask_once(client, transcript, question)
            return 0 if reply.status is ReplyStatus.COMPLETED else 1

        print("AskAussie - ask about the Australian Constitution (exit to quit)")
        while True:
            try:
                line = await asyncio.to_thread(input, "\n> ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line.lower() in {"exit", "quit"}:
                break
            await ask_once(client, transcript, line)

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ask questions about the Constitution")
    parser.add_argument("question", nargs="?", help="Ask a single question and exit")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.url, args.question)))
