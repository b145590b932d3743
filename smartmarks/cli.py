from __future__ import annotations

import argparse
import getpass
import logging
import sys
import time

from smartmarks.client.config import ClientConfig
from smartmarks.client.notify import Notifier
from smartmarks.client.records import Bookmark
from smartmarks.client.session import ClientSession
from smartmarks.client.store import StoreError
from smartmarks.config import ConfigError
from smartmarks.services.gate import DASHBOARD_VIEW


def _echo(level: str, message: str) -> None:
    stream = sys.stderr if level == "error" else sys.stdout
    print(message, file=stream, flush=True)


def _format_bookmark(item: Bookmark) -> str:
    added = item.created_at.strftime("%Y-%m-%d") if item.created_at else "?"
    return f"{item.id:>6}  {added}  {item.title}  <{item.url}>"


def _print_bookmarks(items: list[Bookmark]) -> None:
    print(f"Your Bookmarks ({len(items)})", flush=True)
    for item in items:
        print(_format_bookmark(item), flush=True)


def _require_identity(session: ClientSession):
    identity, redirect_to = session.gate(DASHBOARD_VIEW)
    if redirect_to:
        print(
            "Not signed in. Run `smartmarks login USERNAME` and export SMARTMARKS_TOKEN.",
            file=sys.stderr,
        )
        return None
    return identity


def cmd_login(session: ClientSession, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    try:
        identity, token = session.identity.sign_in(args.username, password)
    except StoreError as exc:
        print(f"Sign-in failed: {exc.message}", file=sys.stderr)
        return 1
    print(f"Signed in as {identity.label}.", file=sys.stderr)
    print(token)
    return 0


def cmd_logout(session: ClientSession, args) -> int:
    try:
        session.identity.sign_out()
    except StoreError as exc:
        print(f"Sign-out failed: {exc.message}", file=sys.stderr)
        return 1
    print("Signed out.")
    return 0


def cmd_whoami(session: ClientSession, args) -> int:
    identity = _require_identity(session)
    if not identity:
        return 1
    print(f"{identity.label} (id {identity.id})")
    return 0


def cmd_list(session: ClientSession, args) -> int:
    identity = _require_identity(session)
    if not identity:
        return 1
    reconciler = session.reconciler(identity.id)
    try:
        if not reconciler.load():
            return 1
        _print_bookmarks(reconciler.bookmarks)
    finally:
        reconciler.close()
    return 0


def cmd_add(session: ClientSession, args) -> int:
    identity = _require_identity(session)
    if not identity:
        return 1
    editor = session.editor(identity.id)
    editor.title = args.title
    editor.url = args.url
    return 0 if editor.submit() else 1


def cmd_rm(session: ClientSession, args) -> int:
    identity = _require_identity(session)
    if not identity:
        return 1
    reconciler = session.reconciler(identity.id)
    try:
        return 0 if reconciler.delete(args.id) else 1
    finally:
        reconciler.close()


def cmd_watch(session: ClientSession, args) -> int:
    identity = _require_identity(session)
    if not identity:
        return 1
    reconciler = session.reconciler(identity.id)
    monitor = session.monitor(
        reconciler, on_state_change=lambda state: print(f"[live updates: {state}]", flush=True)
    )
    reconciler.load()
    monitor.start()
    shown = None
    try:
        while True:
            current = reconciler.bookmarks
            if current != shown:
                _print_bookmarks(current)
                shown = current
            time.sleep(args.interval)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
        reconciler.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="smartmarks")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="sign in and print an API token")
    login.add_argument("username")
    login.add_argument("--password")
    login.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="revoke the current token").set_defaults(func=cmd_logout)
    sub.add_parser("whoami").set_defaults(func=cmd_whoami)
    sub.add_parser("list").set_defaults(func=cmd_list)

    add = sub.add_parser("add", help="add a bookmark")
    add.add_argument("title")
    add.add_argument("url")
    add.set_defaults(func=cmd_add)

    rm = sub.add_parser("rm", help="delete a bookmark")
    rm.add_argument("id", type=int)
    rm.set_defaults(func=cmd_rm)

    watch = sub.add_parser("watch", help="follow the bookmark list live")
    watch.add_argument("--interval", type=float, default=0.5)
    watch.set_defaults(func=cmd_watch)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = ClientConfig.from_env()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    with ClientSession(config, notifier=Notifier(echo=_echo)) as session:
        return args.func(session, args)


if __name__ == "__main__":
    sys.exit(main())
