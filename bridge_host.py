# bridge_host.py
"""
Instruction Bridge Host -- console host for the Instruction Execution Bridge.

ARCHITECTURE:
- SURFACE: The asyncio loop is the surface-owning context; evaluated delivery
  scripts are printed instead of being run in a web view.
- UI: PromptToolkit interactive shell, or non-interactive --replay of a JSON-lines file.
- BRIDGE: Delegates to 'dispatcher.py' (BridgeController).
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback
import webbrowser
from typing import Any, List, Optional

from colorama import Fore, Style, init as colorama_init
from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.patch_stdout import patch_stdout

from bridge_common import BridgeConfig, BRIDGE_CHANNEL, redact_headers
from credential_store import CredentialStore
from dispatcher import BridgeController
from executor import RequestExecutor
from surface import SurfaceContext

BANNER = r"""
{Fore.CYAN}   ___ _ __  ___| |_ _ __ _   _  ___| |_(_) ___  _ __  ___
  / __| '_ \/ __| __| '__| | | |/ __| __| |/ _ \| '_ \/ __|
 | (__| | | \__ \ |_| |  | |_| | (__| |_| | (_) | | | \__ \
  \___|_| |_|___/\__|_|   \__,_|\___|\__|_|\___/|_| |_|___/
{Fore.YELLOW}     [ INSTRUCTION BRIDGE HOST ]{Style.RESET_ALL}
"""

COMMANDS = ['send', 'load', 'ls', 'jar', 'help', 'exit', 'quit', 'q']

def parse_message(line: str) -> Any:
    """Parses one boundary message. Raises ValueError on bad JSON."""
    return json.loads(line)

class BridgeHostApp:
    """Hosts one bridge against a console 'surface'."""

    def __init__(self, config: BridgeConfig, credential_store: Optional[CredentialStore] = None):
        self.config = config
        self.credential_store = credential_store if credential_store is not None else CredentialStore()
        self.controller: Optional[BridgeController] = None
        self.scripts: List[str] = []

    # -- Surface Hooks --

    def _evaluate(self, script: str) -> None:
        self.scripts.append(script)
        print_formatted_text(ANSI(f"{Fore.GREEN}[<-] {script}{Style.RESET_ALL}"))

    def _open_link(self, url: str) -> bool:
        print_formatted_text(ANSI(f"{Fore.BLUE}[LINK] {url}{Style.RESET_ALL}"))
        if self.config.open_links:
            return webbrowser.open(url)
        return True

    def setup(self) -> BridgeController:
        """Binds the bridge to the running loop. Must be called inside it."""
        surface = SurfaceContext(self._evaluate)
        executor = RequestExecutor(credential_store=self.credential_store, config=self.config)
        self.controller = BridgeController(
            surface, executor=executor, config=self.config, url_opener=self._open_link
        )
        return self.controller

    # -- Commands --

    def post_line(self, line: str) -> bool:
        """Posts one JSON message on the bridge channel. Returns False on bad JSON."""
        try:
            body = parse_message(line)
        except ValueError as e:
            print_formatted_text(ANSI(f"{Fore.RED}[ERR] Invalid JSON: {e}{Style.RESET_ALL}"))
            return False
        self.controller.on_message(self.config.channel, body)
        return True

    def load_file(self, path: str) -> int:
        """Posts every JSON line of a file. Blank lines and # comments are skipped."""
        posted = 0
        with open(path, 'r', encoding='utf-8') as fh:
            for raw in fh:
                line = raw.strip()
                if not line or line.startswith('#'):
                    continue
                if self.post_line(line):
                    posted += 1
        return posted

    def show_history(self) -> None:
        history = self.controller.registry.history
        print_formatted_text(ANSI(f"\n{Fore.YELLOW}--- Instructions ({len(history)}) ---{Style.RESET_ALL}"))
        start_idx = max(0, len(history) - 15)
        for i in range(start_idx, len(history)):
            req = history[i].request
            print_formatted_text(f"[{i}] {req.display_str()}")
            if req.headers:
                print_formatted_text(f"     headers: {redact_headers(req.headers)}")

    def show_jar(self) -> None:
        entries = self.credential_store.snapshot()
        print_formatted_text(ANSI(f"\n{Fore.YELLOW}--- Cookie Jar ({len(entries)}) ---{Style.RESET_ALL}"))
        for c in entries:
            flags = ("S" if c['secure'] else "-") + ("H" if c['httpOnly'] else "-")
            print_formatted_text(f"  {flags} {c['domain']}{c['path']} {c['name']}=[REDACTED]")

    def print_help(self) -> None:
        print_formatted_text(ANSI(f"\n{Fore.YELLOW}--- Bridge Host Commands ---{Style.RESET_ALL}"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}send <json>{Style.RESET_ALL}     : Post a boundary message (bare JSON works too)"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}load <file>{Style.RESET_ALL}     : Post every JSON line of a file"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}ls{Style.RESET_ALL}              : List admitted instructions (last 15)"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}jar{Style.RESET_ALL}             : List cookies in the shared jar"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}help / ?{Style.RESET_ALL}        : Show this help message"))
        print_formatted_text(ANSI(f"  {Fore.CYAN}exit / quit / q{Style.RESET_ALL} : Exit"))
        print_formatted_text("")

    def handle_command(self, line: str) -> bool:
        """Runs one shell command. Returns False when the shell should exit."""
        line = line.strip()
        if not line:
            return True
        if line.startswith('{'):
            self.post_line(line)
            return True

        cmd, _, rest = line.partition(' ')
        cmd = cmd.lower()
        rest = rest.strip()

        if cmd == 'send':
            if not rest:
                print_formatted_text("usage: send <json>")
            else:
                self.post_line(rest)
        elif cmd == 'load':
            if not rest:
                print_formatted_text("usage: load <file>")
            else:
                try:
                    n = self.load_file(rest)
                    print_formatted_text(ANSI(f"{Fore.BLUE}[SYS] Posted {n} message(s){Style.RESET_ALL}"))
                except OSError as e:
                    print_formatted_text(ANSI(f"{Fore.RED}[ERR] {e}{Style.RESET_ALL}"))
        elif cmd == 'ls':
            self.show_history()
        elif cmd == 'jar':
            self.show_jar()
        elif cmd in ('help', '?'):
            self.print_help()
        elif cmd in ('q', 'exit', 'quit'):
            return False
        else:
            print_formatted_text(f"Unknown command: {cmd} (try 'help')")
        return True

    # -- Run Modes --

    async def replay(self, path: str) -> int:
        """Posts a JSON-lines file, waits for every delivery, returns the delivery count."""
        self.setup()
        try:
            self.load_file(path)
            await self.controller.wait_idle()
        finally:
            await self.controller.close()
        return self.controller.delivered

    async def run(self) -> None:
        self.setup()
        session = PromptSession(completer=WordCompleter(COMMANDS, ignore_case=True))

        print_formatted_text(ANSI(BANNER.format(Fore=Fore, Style=Style)))
        print_formatted_text(ANSI(
            f"{Fore.CYAN}Channel: {self.config.channel} | Commands: send, load, ls, jar, help, exit{Style.RESET_ALL}"
        ))

        with patch_stdout():
            while True:
                try:
                    line = await session.prompt_async("bridge > ")
                    if not self.handle_command(line):
                        print_formatted_text("Shutting down...")
                        break
                except (KeyboardInterrupt, EOFError):
                    break
                except Exception:  # pylint: disable=broad-exception-caught
                    traceback.print_exc()

        self.controller.surface.destroy()
        await self.controller.close()

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Instruction Bridge Host - executes surface instructions natively")
    parser.add_argument("-c", "--channel", default=BRIDGE_CHANNEL, help=f"Bridge channel name (default: {BRIDGE_CHANNEL})")
    parser.add_argument("-t", "--timeout", type=float, default=None, help="Request timeout in seconds (default: transport default)")
    parser.add_argument("--http2", action="store_true", help="Negotiate HTTP/2 for outbound requests")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS verification for outbound requests")
    parser.add_argument("--open-links", action="store_true", help="Open deep links with the system browser")
    parser.add_argument("-r", "--replay", metavar="FILE", help="Post a JSON-lines file, wait for deliveries and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%H:%M:%S"
    )
    colorama_init(autoreset=True)

    config = BridgeConfig(
        channel=args.channel,
        timeout=args.timeout,
        http2=args.http2,
        verify_ssl=not args.insecure,
        open_links=args.open_links
    )
    app = BridgeHostApp(config)

    try:
        if args.replay:
            delivered = asyncio.run(app.replay(args.replay))
            print_formatted_text(ANSI(f"{Fore.BLUE}[SYS] {delivered} delivery(ies){Style.RESET_ALL}"))
        else:
            asyncio.run(app.run())
    except KeyboardInterrupt:
        pass
    except OSError as e:
        print(f"Error: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
