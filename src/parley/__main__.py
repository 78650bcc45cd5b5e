"""CLI entrypoint: list rooms, or open one and tail its messages."""

import argparse
import asyncio
import logging
import os

from parley.client import ChatClient
from parley.models.messages import Message


def _format(message: Message, user_id: str) -> str:
    who = "me" if message.sender_id == user_id else (message.sender.name if message.sender else message.sender_id)
    return f"[{message.created_at:%H:%M}] {who}: {message.content}"


async def _run(args: argparse.Namespace) -> int:
    client = ChatClient(args.user_id, api_url=args.api_url)
    client.on_error(lambda err: print(f"! {err.kind}: {err}"))
    client.connection.on_state_change(lambda state: print(f"* connection {state.value}"))
    try:
        await client.start()
        if args.room is None:
            for room in client.rooms.rooms:
                print(f"{room.id}\t{client.rooms.display_name(room)}\t{room.preview()}")
            return 0

        async with client.room(args.room) as room:
            for message in reversed(room.messages):
                print(_format(message, args.user_id))
            if args.send:
                result = await room.send(args.send)
                if result.error is not None:
                    return 1

            def on_latest(room_id: str, message: Message) -> None:
                if room_id == args.room:
                    print(_format(message, args.user_id))

            with client.stream.on_latest(on_latest):
                if args.follow:
                    await asyncio.Event().wait()
        return 0
    finally:
        await client.close()


def main():
    parser = argparse.ArgumentParser(description="Parley chat client")
    parser.add_argument(
        "--api-url", default=os.environ.get("PARLEY_SERVER_API_URL", "http://localhost:3000"), help="Backend base URL"
    )
    parser.add_argument(
        "--user-id", default=os.environ.get("PARLEY_USER_ID", "1"), help="Local user id"
    )
    parser.add_argument("--room", help="Room to open; omit to list rooms")
    parser.add_argument("--send", help="Message to send after opening the room")
    parser.add_argument("--follow", action="store_true", help="Keep printing live messages")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        raise SystemExit(asyncio.run(_run(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
