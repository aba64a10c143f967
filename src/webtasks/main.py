#!/usr/bin/env python3
"""
Interactive console for the page agent.

Launches a browser, optionally opens a start URL, then reads commands:

    open <url>        navigate (https:// assumed)
    login <username>  fill the login form (password is prompted)
    presets           list operation presets
    run <preset-id>   execute a preset on the page
    ask <prompt>      one exchange with the reasoning service
    click <token>     resolve and click an element
    locate <token>    show what <token> would click, without clicking
    snapshot          capture (and archive) the current page
    quit
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .agent import AgentOrchestrator
from .config import Settings, load_settings
from .core.exceptions import BrowserError, ConfigurationError, ExecutionFailure
from .core.models import OperationPreset, PageSnapshot
from .infrastructure import PlaywrightSurface, Pyttsx3Narrator, ReasoningClient, SilentNarrator
from .page import (
    ElementResolver,
    PresetRunner,
    ScriptCompiler,
    SnapshotSerializer,
    StaticElementResolver,
    default_presets,
)

logger = logging.getLogger(__name__)

HELP = __doc__.split("commands:", 1)[1].rstrip()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="webtasks", description="Page agent console")
    parser.add_argument("--url", help="Page to open on start")
    parser.add_argument("--presets", type=Path, help="JSON file with a list of operation presets")
    parser.add_argument("--headless", action="store_true", help="Run the browser without a window")
    parser.add_argument("--silent", action="store_true", help="Disable answer narration")
    return parser.parse_args(argv)


def load_presets(path: Optional[Path]) -> List[OperationPreset]:
    """Read presets from ``path``; fall back to the example presets."""
    if path is None:
        return default_presets()
    data = json.loads(path.read_text(encoding="utf-8"))
    presets = [OperationPreset.from_json(item) for item in data]
    return presets or default_presets()


class Console:
    """Command loop over one browser page."""

    def __init__(
        self,
        settings: Settings,
        surface: PlaywrightSurface,
        reasoning: ReasoningClient,
        presets: List[OperationPreset],
        narrate: bool = True
    ):
        self.settings = settings
        self.surface = surface
        self.reasoning = reasoning
        self.presets: Dict[str, OperationPreset] = {p.id: p for p in presets}
        self.narrator = Pyttsx3Narrator(settings.narration_words_per_minute) if narrate else SilentNarrator()

        self.compiler = ScriptCompiler()
        self.runner = PresetRunner(self.compiler)
        self.serializer = SnapshotSerializer(settings)
        self.resolver = ElementResolver()
        self.static_resolver = StaticElementResolver()
        self.previous_answer = ""

    async def loop(self) -> None:
        print(HELP)
        while True:
            try:
                line = (await asyncio.to_thread(input, "\n▶ ")).strip()
            except EOFError:
                return
            if not line:
                continue

            command, _, arg = line.partition(" ")
            command, arg = command.lower(), arg.strip()
            if command in ("quit", "exit"):
                return

            handler = getattr(self, f"cmd_{command}", None)
            if handler is None:
                print(f"❓ Unknown command: {command}")
                continue
            await handler(arg)

    async def cmd_open(self, arg: str) -> None:
        result = await self.surface.load_url(arg)
        if not result.success:
            print(f"❌ {result.message}")
            return
        print(f"🌐 {result.message}")
        await self.focus_password()

    async def cmd_login(self, arg: str) -> None:
        parts = arg.split()
        if not parts:
            print("❓ Usage: login <username> [username-selector] [password-selector]")
            return
        username, selectors = parts[0], parts[1:3]
        password = await asyncio.to_thread(getpass.getpass, "🔑 Password: ")
        script = self.compiler.compile_credential_fill(username, password, *selectors)
        try:
            result = await self.surface.evaluate_script(script)
        except ExecutionFailure as e:
            print(f"❌ Login failed: {e.message}")
            return
        print(f"🔐 {result}")

    async def cmd_presets(self, arg: str) -> None:
        for preset in self.presets.values():
            target = f" {preset.selector}" if preset.selector else ""
            print(f"  [{preset.id}] {preset.label} ({preset.type.value}{target})")

    async def cmd_run(self, arg: str) -> None:
        preset = self.presets.get(arg)
        if preset is None:
            print(f"❓ No preset with id '{arg}'")
            return
        result = await self.runner.run(preset, self.surface)
        print(f"{'✅' if result.success else '❌'} {result.message}")

    async def cmd_ask(self, arg: str) -> None:
        orchestrator = AgentOrchestrator(
            self.settings, self.reasoning, self.serializer, self.resolver, self.narrator
        )
        orchestrator.previous_answer = self.previous_answer

        print("🤔 Thinking...")
        exchange = await orchestrator.submit(arg, self.surface)
        if exchange is None:
            print("❓ Nothing to ask")
            return

        if orchestrator.error:
            print(f"❌ {orchestrator.error}")
            await orchestrator.cancel()
        elif exchange.action is not None:
            print(f"🖱️  {exchange.action.status}")
        else:
            print(f"💬 {exchange.answer}")
            self.previous_answer = orchestrator.previous_answer
            await orchestrator.wait_closed()

    async def cmd_click(self, arg: str) -> None:
        result = await self.resolver.resolve(arg, self.surface)
        print(f"🖱️  {result.status}")

    async def cmd_locate(self, arg: str) -> None:
        snapshot = await self.serializer.capture(self.surface)
        if not isinstance(snapshot, PageSnapshot):
            print(f"❌ Snapshot failed: {getattr(snapshot, 'error', 'no page')}")
            return
        located = self.static_resolver.locate(snapshot.html, arg)
        if located is None:
            print("🔍 not found")
            return
        print(f"🔍 <{located.element.name}> via {located.match.strategy.value} -> {located.status}")
        print(f"   {str(located.element)[:200]}")

    async def cmd_snapshot(self, arg: str) -> None:
        snapshot = await self.serializer.capture(self.surface)
        if not isinstance(snapshot, PageSnapshot):
            print(f"❌ Snapshot failed: {getattr(snapshot, 'error', 'no page')}")
            return
        print(f"📸 {snapshot.title or '(untitled)'} - {snapshot.url}")
        print(f"   {len(snapshot.html)} chars, {len(snapshot.resources)} resources, {len(snapshot.iframes)} iframes")

    def close(self) -> None:
        self.narrator.close()

    async def focus_password(self) -> None:
        """Nudge browser autofill by focusing the first password field."""
        try:
            await self.surface.evaluate_script(self.compiler.compile_focus_password())
        except ExecutionFailure as e:
            logger.warning(f"Password focus failed: {e.message}")


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main async entry point.

    Returns:
        Exit code (0 = success, 1 = failure)
    """
    args = parse_args(argv)

    print("\n" + "=" * 70)
    print("   WEB TASKS AGENT")
    print("=" * 70 + "\n")

    overrides = {"headless": True} if args.headless else {}
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        print(f"❌ Configuration Error: {e}")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if settings.debug_mode else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        presets = load_presets(args.presets)
    except (OSError, ValueError) as e:
        print(f"❌ Could not load presets: {e}")
        return 1

    print("✅ Configuration loaded")
    print(f"   Service: {settings.reasoning_service_url}")
    print(f"   Snapshots: {settings.snapshot_dir if settings.archive_snapshots else 'not archived'}")

    try:
        async with PlaywrightSurface(settings) as surface, ReasoningClient(settings) as reasoning:
            print("✅ Browser launched\n")
            console = Console(settings, surface, reasoning, presets, narrate=not args.silent)
            try:
                if args.url:
                    await console.cmd_open(args.url)
                await console.loop()
            finally:
                console.close()
            return 0

    except BrowserError as e:
        print(f"\n❌ Browser Error: {e}")
        return 1

    finally:
        print("\n👋 Cleanup complete")


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    run()
