"""Command-line entry point."""

from __future__ import annotations

import argparse
import getpass
import logging
import shutil
import sys
from pathlib import Path
from typing import Sequence
from urllib.parse import urlsplit

from .config import Server
from .errors import ClashError, InteractiveError, OtherError
from .flags import DEFAULT_TEST_URL, Flags
from .models import ProxyType
from .render import ProxyListOpt, render_list
from .sort import ProxySortBy, SortOrder

logger = logging.getLogger(__name__)

_NO_SERVER = "No server configured yet. Use `clashctl server add` first."
_ACCESS_QUESTION = "Secret of Clash API, default to None: "


def _green(text: str) -> str:
    if sys.stdout.isatty():
        return f"\x1b[32m{text}\x1b[0m"
    return text


def _url(text: str) -> str:
    try:
        parts = urlsplit(text)
        _ = parts.port
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid URL: {text}") from exc
    if not parts.scheme or not parts.netloc:
        raise argparse.ArgumentTypeError(f"invalid URL: {text}")
    return text


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of all commands."""
    parser = argparse.ArgumentParser(
        prog="clashctl", description="Interact with the Clash RESTful API")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Verbosity. Default: INFO, -v DEBUG, -vv TRACE")
    parser.add_argument("-t", "--timeout", type=int, default=2000,
                        help="Timeout of requests, in ms")
    location = parser.add_mutually_exclusive_group()
    location.add_argument("--config-dir", type=Path,
                          help="Path of config directory. Default to ~/.config/clashctl")
    location.add_argument("-c", "--config-path", type=Path,
                          help="Path of config file. Default to ~/.config/clashctl/config.ron")
    parser.add_argument("--test-url", type=_url, default=DEFAULT_TEST_URL,
                        help="Url for testing proxy endpoints")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    proxy = commands.add_parser("proxy", help="Interacting with proxies")
    proxy_actions = proxy.add_subparsers(dest="proxy_name", required=True, metavar="ACTION")
    listing = proxy_actions.add_parser("list", aliases=["ls"], help="List proxies (alias ls)")
    listing.set_defaults(proxy_action="list")
    listing.add_argument("--sort-by", type=ProxySortBy.parse, default=ProxySortBy.DELAY,
                         metavar="{type,name,delay}")
    listing.add_argument("--sort-order", type=SortOrder.parse, default=SortOrder.ASCENDANT,
                         metavar="{ascendant,descendant}")
    listing.add_argument("-r", "--reverse", action="store_true",
                         help="Reverse the listed result")
    types = listing.add_mutually_exclusive_group()
    types.add_argument("-e", "--exclude", type=ProxyType.parse, nargs="+", action="extend",
                       metavar="TYPE", help="Exclude proxy types")
    types.add_argument("-i", "--include", type=ProxyType.parse, nargs="+", action="extend",
                       metavar="TYPE", help="Include proxy types")
    listing.add_argument("-p", "--plain", action="store_true",
                         help="Show proxies and groups without cascading")
    proxy_actions.add_parser("use", help="Set active proxy").set_defaults(proxy_action="use")

    server = commands.add_parser("server", help="Interacting with servers")
    server_actions = server.add_subparsers(dest="server_name", required=True, metavar="ACTION")
    server_actions.add_parser("add", aliases=["a"], help="Add new server (alias a)") \
        .set_defaults(server_action="add")
    server_actions.add_parser("use", help="Select active server") \
        .set_defaults(server_action="use")
    server_actions.add_parser("list", aliases=["ls"], help="Show current active server") \
        .set_defaults(server_action="list")
    server_actions.add_parser("del", help="Remove servers") \
        .set_defaults(server_action="del")
    return parser


# ---------------------------------------------------------------- prompts

def _show_choices(message: str, choices: Sequence[str], default: int | None) -> None:
    print(message)
    for number, choice in enumerate(choices, 1):
        marker = ">" if default == number - 1 else " "
        print(f"{marker} {number}) {choice}")


def _select(message: str, choices: Sequence[str], default: int = 0) -> str:
    _show_choices(message, choices, default)
    while True:
        answer = input(f"Choose [1-{len(choices)}] (default {default + 1}): ").strip()
        if not answer:
            return choices[default]
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1]
        print(f"Please enter a number between 1 and {len(choices)}")


def _multi_select(message: str, choices: Sequence[str]) -> list[str]:
    _show_choices(message, choices, None)
    while True:
        answer = input("Choose numbers separated by commas (empty for none): ")
        tokens = answer.replace(",", " ").split()
        if all(t.isdigit() and 1 <= int(t) <= len(choices) for t in tokens):
            return [choices[i - 1] for i in sorted({int(t) for t in tokens})]
        print(f"Please enter numbers between 1 and {len(choices)}")


def _confirm(message: str, default: bool = True) -> bool:
    hint = "Y/n" if default else "y/N"
    while True:
        answer = input(f"{message} ({hint}) ").strip().lower()
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _ask_url() -> str:
    while True:
        text = input("URL of Clash API: ").strip()
        try:
            _url(text)
            return text
        except argparse.ArgumentTypeError as exc:
            print(f"Invalid URL: {exc}")


# ---------------------------------------------------------------- handlers

def _list_opt(args: argparse.Namespace) -> ProxyListOpt:
    return ProxyListOpt(
        sort_by=args.sort_by,
        sort_order=args.sort_order,
        reverse=args.reverse,
        exclude=list(args.exclude or []),
        include=list(args.include or []),
        plain=args.plain,
    )


def handle_proxy(args: argparse.Namespace, flags: Flags) -> None:
    """List proxies or switch the proxy a selector group uses."""
    config = flags.get_config()
    server = config.using_server()
    if server is None:
        logger.warning(_NO_SERVER)
        return
    logger.info("Using %s", server)
    clash = server.into_clash_with_timeout(flags.timeout / 1000)

    if args.proxy_action == "list":
        render_list(clash.get_proxies(), _list_opt(args))
        return

    proxies = clash.get_proxies()
    groups = sorted(name for name, proxy in proxies.items()
                    if proxy.proxy_type.is_selector() and name not in ("GLOBAL", "REJECT"))
    if not groups:
        logger.warning("No selector groups to change")
        return
    group = _select("Which group to change?", groups)
    proxy = clash.get_proxy(group)
    if not proxy.all:
        raise OtherError(f"Group {group} has no members")
    members = proxy.all
    current = members.index(proxy.now) if proxy.now in members else 0
    member = _select("Which proxy to use?", members, default=current)
    logger.info("Setting group %s to use %s", group, member)
    clash.set_proxygroup_selected(group, member)
    logger.info("Done!")


def handle_server(args: argparse.Namespace, flags: Flags) -> None:
    """Add, select, list or remove configured servers."""
    config = flags.get_config()
    action = args.server_action

    if action == "add":
        url = _ask_url()
        answer = getpass.getpass(_ACCESS_QUESTION)
        server = Server(url=url, secret=answer or None)
        logger.info("Adding %s", server)
        config.servers.append(server)
        config.use_server(server.url)
        config.write()
        return

    if not config.servers:
        logger.warning(_NO_SERVER)
        return
    urls = [server.url for server in config.servers]

    if action == "use":
        chosen = _select("Select active server to interact with", urls)
        config.use_server(chosen)
        config.write()
    elif action == "list":
        width = shutil.get_terminal_size((70, 0)).columns
        active = config.using_server()
        rule = "-" * width
        header = _green(f"{'ACTIVE':<8}")
        print(f"\n{rule}")
        print(f"{header}{'URL':<50}")
        print(rule)
        for server in config.servers:
            marker = "→" if server == active else ""
            cell = _green(f"{marker:^8}")
            print(f"{cell}{server.url:<50}")
        print(f"{rule}\n")
    elif action == "del":
        chosen = _multi_select("Select server(s) to remove", urls)
        if not chosen or not _confirm(f"Confirm to remove {len(chosen)} servers?"):
            logger.warning("Operation cancelled")
        else:
            logger.info("Removing %d servers", len(chosen))
            config.servers[:] = [s for s in config.servers if s.url not in chosen]
        config.write()


def _init_logging(verbose: int) -> None:
    level = logging.INFO if verbose == 0 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")
    logging.getLogger("clashctl").setLevel(level)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    flags = Flags(
        verbose=args.verbose,
        timeout=args.timeout,
        config_dir=args.config_dir,
        config_path=args.config_path,
        test_url=args.test_url,
    )
    if args.command is None:
        parser.print_help()
        return 0
    _init_logging(flags.verbose)
    handlers = {"proxy": handle_proxy, "server": handle_server}
    try:
        handlers[args.command](args, flags)
    except (ClashError, InteractiveError) as exc:
        print(exc, file=sys.stderr)
        return 1
    except (EOFError, KeyboardInterrupt):
        print("Prompt aborted", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())