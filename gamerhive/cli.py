# gamerhive/cli.py
"""
GamerHive command line client.

Usage:
    gamerhive signup [--email EMAIL] [--username NAME]
    gamerhive login [--email EMAIL]
    gamerhive logout
    gamerhive whoami
    gamerhive export [--dir DIR]
    gamerhive deactivate [--yes]
    gamerhive reactivate
    gamerhive delete [--yes]
    gamerhive notifications [on|off]
    gamerhive recover [--email EMAIL]

The session is kept in GAMERHIVE_STATE_DIR/session.json. Passwords are read
with getpass; codes are read from stdin. During OTP entry, "r" asks for a new
code and "b" goes back.

Exit codes: 0 success, 1 failure or cancelled.
"""

from __future__ import annotations

import sys
import asyncio
import getpass
import logging
import argparse
from pathlib import Path
from typing import Callable, List, Optional

from gamerhive.api import ApiClient
from gamerhive.config import get_log_level, get_session_file
from gamerhive.accounts.flow import AuthFlow, FlowStep
from gamerhive.accounts.lifecycle import AccountLifecycleController, EXPORT_SUCCESS_MESSAGE
from gamerhive.accounts.models import CredentialDraft, Purpose
from gamerhive.accounts.recovery import RecoveryStep
from gamerhive.accounts.session import FileStorage, NotificationPreference, SessionStore, Storage
from gamerhive.errors import AuthError

log = logging.getLogger("gamerhive.cli")

PromptFn = Callable[[str], str]

RESEND_COMMAND = "r"
BACK_COMMAND = "b"


class Console:
    """Terminal I/O, swappable in tests."""

    def __init__(
        self,
        prompt: PromptFn = input,
        secret: PromptFn = getpass.getpass,
        out: Callable[[str], None] = print,
        err: Optional[Callable[[str], None]] = None,
    ):
        self.prompt = prompt
        self.secret = secret
        self.out = out
        self.err = err or (lambda line: print(line, file=sys.stderr))

    def ask(self, label: str, default: Optional[str] = None) -> str:
        if default:
            return default
        return self.prompt(label).strip()

    def confirm(self, title: str, message: str) -> bool:
        self.out(title)
        self.out(message)
        return self.prompt("Type 'yes' to continue: ").strip().lower() in ("y", "yes")


# ============================================================
# Auth Commands
# ============================================================

async def _otp_loop(flow: AuthFlow, console: Console) -> bool:
    console.out(f"A verification code was sent to {flow.pending.email}.")
    while flow.step is FlowStep.OTP:
        code = console.prompt("Enter the 6-digit code (r = resend, b = back): ").strip()

        if code.lower() == BACK_COMMAND:
            flow.back()
            return False

        if code.lower() == RESEND_COMMAND:
            if await flow.resend():
                console.out(flow.challenge.notice or "")
            else:
                console.err(f"Error: {flow.error}")
            continue

        flow.enter_code(code)
        if not await flow.verify():
            console.err(f"Error: {flow.error}")

    record = flow.acknowledge()
    if record is None:
        return False
    console.out(f"Welcome, {flow.welcome_name or record.user.email}!")
    return True


async def cmd_auth(args, api: ApiClient, store: SessionStore, console: Console) -> int:
    mode = Purpose.SIGNUP if args.command == "signup" else Purpose.LOGIN
    flow = AuthFlow(api, store)
    try:
        if mode is Purpose.SIGNUP:
            draft = CredentialDraft(
                username=console.ask("Username: ", args.username),
                email=console.ask("Email: ", args.email),
                password=console.secret("Password: "),
                confirm_password=console.secret("Confirm password: "),
            )
        else:
            draft = CredentialDraft(
                email=console.ask("Email: ", args.email),
                password=console.secret("Password: "),
            )

        if not await flow.submit(draft, mode):
            console.err(f"Error: {flow.error}")
            return 1

        return 0 if await _otp_loop(flow, console) else 1
    finally:
        flow.close()


async def cmd_recover(args, api: ApiClient, store: SessionStore, console: Console) -> int:
    flow = AuthFlow(api, store)
    recovery = flow.start_recovery()
    try:
        if not await recovery.request_reset(console.ask("Email: ", args.email)):
            console.err(f"Error: {recovery.error}")
            return 1
        console.out(recovery.notice or "")

        while recovery.step is not RecoveryStep.DONE:
            if recovery.step is RecoveryStep.CODE:
                code = console.prompt("Enter the 6-digit code (r = resend, b = back): ").strip()
                if code.lower() == BACK_COMMAND:
                    flow.back()
                    return 1
                if code.lower() == RESEND_COMMAND:
                    if await recovery.resend():
                        console.out(recovery.notice or "")
                    else:
                        console.err(f"Error: {recovery.error}")
                    continue
                recovery.enter_code(code)
                if not recovery.confirm_code():
                    console.err(f"Error: {recovery.error}")
                continue

            new_password = console.secret("New password: ")
            confirm_password = console.secret("Confirm new password: ")
            if not await recovery.reset_password(new_password, confirm_password):
                console.err(f"Error: {recovery.error}")

        flow.finish_recovery()
        console.out(f"Password changed. Log in as {flow.prefill_email} to continue.")
        return 0
    finally:
        flow.close()


def cmd_logout(args, api: ApiClient, store: SessionStore, console: Console) -> int:
    store.clear()
    console.out("Logged out")
    return 0


def cmd_whoami(args, api: ApiClient, store: SessionStore, console: Console) -> int:
    record = store.admit()
    if record is None:
        console.out("Not logged in")
        return 1
    user = record.user
    console.out(f"{user.display_name or user.email} <{user.email}>")
    return 0


def cmd_notifications(args, storage: Storage, console: Console) -> int:
    preference = NotificationPreference(storage)
    if args.state is not None:
        preference.set_enabled(args.state == "on")
    console.out(f"Notifications {'on' if preference.is_enabled() else 'off'}")
    return 0


# ============================================================
# Account Commands
# ============================================================

async def cmd_account(args, api: ApiClient, store: SessionStore, console: Console) -> int:
    confirm = (lambda title, message: True) if getattr(args, "yes", False) else console.confirm
    export_dir = Path(args.dir) if getattr(args, "dir", None) else None
    controller = AccountLifecycleController(api, store, confirm=confirm, export_dir=export_dir)

    try:
        if args.command == "export":
            path = await controller.export_data()
            console.out(f"{EXPORT_SUCCESS_MESSAGE}: {path}")
        elif args.command == "deactivate":
            if not await controller.deactivate():
                console.out("Cancelled")
                return 1
            console.out("Account deactivated. Log in again to reactivate it.")
        elif args.command == "reactivate":
            await controller.reactivate()
            console.out("Account active")
        elif args.command == "delete":
            if not await controller.delete_account():
                console.out("Cancelled")
                return 1
            console.out("Account deleted")
    except AuthError as e:
        console.err(f"Error: {e.message}")
        return 1
    return 0


# ============================================================
# Entry Point
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gamerhive", description="GamerHive account client")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose (debug) output")
    sub = parser.add_subparsers(dest="command", required=True)

    signup = sub.add_parser("signup", help="Create an account")
    signup.add_argument("--email")
    signup.add_argument("--username")

    login = sub.add_parser("login", help="Log in with email, password and a one-time code")
    login.add_argument("--email")

    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("whoami", help="Show the logged-in user")

    export = sub.add_parser("export", help="Download your data as JSON")
    export.add_argument("--dir", help="Directory for the export file (default: GAMERHIVE_EXPORT_DIR)")

    for name, help_text in (
        ("deactivate", "Temporarily deactivate your account"),
        ("delete", "Permanently delete your account"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    sub.add_parser("reactivate", help="Mark your account active again")

    notifications = sub.add_parser("notifications", help="Show or set the notification preference")
    notifications.add_argument("state", nargs="?", choices=("on", "off"))

    recover = sub.add_parser("recover", help="Reset a forgotten password")
    recover.add_argument("--email")

    return parser


async def run_command(args, api: ApiClient, storage: Storage, console: Optional[Console] = None) -> int:
    """Run one parsed command against api and storage."""
    console = console or Console()
    if api.store is None:
        api.store = SessionStore(storage)
    store = api.store

    if args.command in ("signup", "login"):
        return await cmd_auth(args, api, store, console)
    if args.command == "recover":
        return await cmd_recover(args, api, store, console)
    if args.command == "logout":
        return cmd_logout(args, api, store, console)
    if args.command == "whoami":
        return cmd_whoami(args, api, store, console)
    if args.command == "notifications":
        return cmd_notifications(args, storage, console)
    return await cmd_account(args, api, store, console)


async def _main(args) -> int:
    storage = FileStorage(get_session_file())
    store = SessionStore(storage)
    async with ApiClient(store=store) as api:
        return await run_command(args, api, storage)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return asyncio.run(_main(args))
    except (KeyboardInterrupt, EOFError):
        return 1


if __name__ == "__main__":
    sys.exit(main())
