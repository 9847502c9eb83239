#!/usr/bin/env python3
"""
Realtime Inventory Agent - Command Line Interface

Terminal front-end for the realtime voice session and its backend.

Commands:
    chat        - Start a realtime voice + text session
    serve       - Run the credential / recommendation backend
    recommend   - Query the local inventory catalog
    test        - Check configuration

Usage:
    python -m src.cli serve
    python -m src.cli chat
    python -m src.cli chat --manual --mute
    python -m src.cli recommend --sub-category running --max-price 150

For help on a specific command:
    python -m src.cli <command> --help
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.logger import init_logging, get_logger
from src.config import settings

logger = get_logger(__name__)

CHAT_COMMANDS = """Type a message and press Enter to send it. Commands:
  /vad         - Toggle turn detection (server VAD / manual)
  /mute        - Toggle assistant audio
  /connect     - Connect again after a disconnect
  /disconnect  - Close the connection
  /stats       - Show session statistics
  /quit        - Exit"""


class TranscriptPrinter:
    """
    Prints transcript changes as they stream in.

    Appended text is written as a suffix on the current line; a change to a
    different entry, or a replacement that is not an extension of what was
    printed, starts a new line.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._current_id: Optional[str] = None
        self._printed = ""

    def __call__(self, entry) -> None:
        from src.realtime.transcript import render_markup, ansi_strong

        text = entry.text
        if entry.id == self._current_id and text.startswith(self._printed):
            suffix = text[len(self._printed):]
        else:
            if self._current_id is not None:
                self.stream.write("\n")
            self.stream.write(f"{entry.role.label}: ")
            suffix = text
        self.stream.write(render_markup(suffix, ansi_strong))
        self.stream.flush()
        self._current_id = entry.id
        self._printed = text

    def break_line(self) -> None:
        if self._current_id is not None:
            self.stream.write("\n")
            self.stream.flush()
        self._current_id = None
        self._printed = ""


async def run_chat(args: argparse.Namespace) -> int:
    from src.agents import build_inventory_agent
    from src.realtime import RealtimeSession, TurnDetectionMode

    printer = TranscriptPrinter()

    def notice(text: str) -> None:
        printer.break_line()
        print(f"ℹ️  {text}")

    mode = TurnDetectionMode.MANUAL if args.manual else None
    session = RealtimeSession(build_inventory_agent(), turn_detection=mode, on_notice=notice)
    session.transcript.subscribe(printer)

    try:
        if not await session.connect():
            return 1
        if not await session.wait_until_open():
            print("⚠️  Control channel did not open in time.")
        if args.mute:
            session.set_audio_playback(False)

        while True:
            try:
                line = await asyncio.to_thread(input)
            except EOFError:
                break

            user_input = line.strip()
            if not user_input:
                continue

            command = user_input.lower()
            if command == "/quit":
                break
            elif command in ("/vad", "/mode"):
                session.toggle_turn_detection()
            elif command == "/mute":
                session.toggle_audio_playback()
            elif command == "/connect":
                if await session.connect():
                    await session.wait_until_open()
            elif command == "/disconnect":
                await session.disconnect()
            elif command == "/stats":
                printer.break_line()
                print(json.dumps(session.stats, indent=2))
            elif not session.send_text(user_input):
                print("⚠️  Not connected. Use /connect first.")
    finally:
        printer.break_line()
        await session.disconnect()

    return 0


def cmd_chat(args: argparse.Namespace) -> int:
    """
    Start an interactive realtime session.
    """
    print("\n" + "=" * 60)
    print("🎙️  Realtime Inventory Agent")
    print("=" * 60)
    print(f"🔑 Session endpoint: {settings.realtime.session_endpoint}")
    print(f"🧠 Model: {settings.openai.realtime_model}")
    print(f"🎤 Turn detection: {'manual' if args.manual else settings.realtime.turn_detection_mode}")
    print(CHAT_COMMANDS)
    print("-" * 60)

    try:
        return asyncio.run(run_chat(args))
    except KeyboardInterrupt:
        print("\n\n👋 Session interrupted.")
        return 0
    except Exception as e:
        print(f"❌ Chat failed: {e}")
        logger.exception("Chat error")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the FastAPI backend.
    """
    import uvicorn

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    print(f"\n🚀 Serving on http://{host}:{port}")
    uvicorn.run("api_server:app", host=host, port=port, reload=args.reload)
    return 0


def cmd_recommend(args: argparse.Namespace) -> int:
    """
    Filter the local inventory the same way /api/recommend does.
    """
    from src.services.catalog import InventoryCatalog, InventoryFilter

    try:
        catalog = InventoryCatalog.load(args.csv or settings.catalog.path)
    except OSError as e:
        print(f"❌ Could not read inventory: {e}")
        return 1

    filters = InventoryFilter(
        product_name=args.product_name,
        sub_category=args.sub_category,
        brand=args.brand,
        short_description=args.description,
        price_min=args.min_price,
        price_max=args.max_price,
    )
    result = catalog.recommend(filters)

    if args.json:
        print(json.dumps(result, indent=2))
        return 0

    if not result["recommendations"]:
        print(f"🔍 {result['message']}")
        return 0

    print(f"\n🛒 {len(result['recommendations'])} match(es):")
    for item in result["recommendations"]:
        print(f"   {item['Brand']} {item['Product Name']} ({item['Subcategory']}) - {item['Price (AUD)']}  [{item['SKU']}]")
    print()
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    """
    Check configuration.
    """
    print("\n🔧 Configuration check")
    print("-" * 50)

    ok = True
    if settings.openai.api_key:
        print("✅ OPENAI_API_KEY is set (backend can mint credentials)")
    else:
        print("⚠️  OPENAI_API_KEY is not set (only needed by the backend)")

    try:
        settings.realtime.validate()
        print(f"✅ Realtime settings valid (turn detection: {settings.realtime.turn_detection_mode})")
    except ValueError as e:
        print(f"❌ {e}")
        ok = False

    if settings.catalog.path.exists():
        print(f"✅ Inventory found: {settings.catalog.path}")
    else:
        print(f"❌ Inventory missing: {settings.catalog.path}")
        ok = False

    return 0 if ok else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="realtime-inventory-agent",
        description="Realtime voice shopping assistant CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Run the backend:
    python -m src.cli serve --port 3000

  Talk to the agent:
    python -m src.cli chat
    python -m src.cli chat --manual

  Search the inventory:
    python -m src.cli recommend --brand nike --min-price 50 --max-price 200
        """
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Chat command
    chat_parser = subparsers.add_parser(
        "chat",
        help="Start a realtime voice + text session"
    )
    chat_parser.add_argument(
        "--manual",
        action="store_true",
        help="Start with manual turn detection (microphone off)"
    )
    chat_parser.add_argument(
        "--mute",
        action="store_true",
        help="Start with assistant audio muted"
    )
    chat_parser.set_defaults(func=cmd_chat)

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the credential and recommendation backend"
    )
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on changes")
    serve_parser.set_defaults(func=cmd_serve)

    # Recommend command
    recommend_parser = subparsers.add_parser(
        "recommend",
        help="Query the local inventory catalog"
    )
    recommend_parser.add_argument("--product-name", default="any", help="Product name substring")
    recommend_parser.add_argument("--sub-category", default="any", help="Subcategory substring")
    recommend_parser.add_argument("--brand", default="any", help="Brand substring")
    recommend_parser.add_argument("--description", default="any", help="Short description substring")
    recommend_parser.add_argument("--min-price", type=float, default=None, help="Minimum price (AUD)")
    recommend_parser.add_argument("--max-price", type=float, default=None, help="Maximum price (AUD)")
    recommend_parser.add_argument("--csv", type=str, default=None, help="Inventory CSV path")
    recommend_parser.add_argument("--json", action="store_true", help="Print the raw response body")
    recommend_parser.set_defaults(func=cmd_recommend)

    # Test command
    test_parser = subparsers.add_parser(
        "test",
        help="Test system configuration"
    )
    test_parser.set_defaults(func=cmd_test)

    return parser


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    init_logging("DEBUG" if args.verbose else None)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
