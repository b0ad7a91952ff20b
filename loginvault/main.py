"""
Command-line entry point for LoginVault.
"""

import sys
import argparse
import logging
from typing import List, Optional

from . import config
from .errors import InvalidSecret, VaultError
from .paths import VaultPaths, get_default_data_dir
from .storage import Account
from .utils import setup_logging
from .vault_manager import VaultManager


class LoginVaultApp:
    """Runs one command against a vault."""

    def __init__(self, data_dir: str, verbose: bool = False):
        self.paths = VaultPaths.for_directory(data_dir)
        self.paths.ensure_data_dir()
        self.logger = setup_logging(self.paths.log_dir, logging.DEBUG if verbose else logging.WARNING)
        self.vault = VaultManager(self.paths, logger=self.logger)

    def _require(self, name_or_id: str) -> Account:
        account = self.vault.find(name_or_id)
        if account is None:
            raise LookupError(f"No account named {name_or_id!r}")
        return account

    def cmd_list(self, args) -> int:
        if self.vault.is_degraded:
            print("Warning: the vault file could not be read.", file=sys.stderr)
        for account in sorted(self.vault.accounts(), key=lambda a: (a.group, a.name)):
            last = account.last_used.strftime("%Y-%m-%d %H:%M") if account.has_been_used else "never"
            print(f"{account.id}  [{account.group}] {account.name} ({account.username})  last used: {last}")
        return 0

    def cmd_code(self, args) -> int:
        account = self._require(args.account)
        code = self.vault.current_totp(account, wait_if_expiring=args.wait)
        print(f"{code}  ({self.vault.time_remaining()}s left)")
        self.vault.touch_last_used(account.id)
        return 0

    def cmd_add(self, args) -> int:
        # Fail on a bad secret before anything is written.
        self.vault.totp.generate_totp(args.secret)
        account = Account(name=args.name, username=args.username, password=args.password,
                          otp_secret=args.secret, group=args.group)
        stored = self.vault.upsert(account)
        print(stored.id)
        return 0

    def cmd_delete(self, args) -> int:
        account = self._require(args.account)
        self.vault.delete(account.id)
        return 0

    def cmd_import(self, args) -> int:
        with open(args.file, 'r', encoding='utf-8') as f:
            result = self.vault.import_batch(f.read(), default_group=args.group)
        for error in result.errors:
            print(f"line {error.line_number}: {error.reason}", file=sys.stderr)
        print(f"Imported {len(result.accounts)} accounts, {len(result.errors)} errors")
        return 0 if result.ok else 1

    def cmd_backup(self, args) -> int:
        self.vault.backup(args.destination)
        return 0

    def cmd_restore(self, args) -> int:
        accounts = self.vault.restore(args.source)
        if self.vault.is_degraded:
            print("Warning: the restored vault could not be read.", file=sys.stderr)
            return 1
        print(f"Restored {len(accounts)} accounts")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loginvault", description=config.APP_DESCRIPTION)
    parser.add_argument("--data-dir", default=None, help="vault directory (default: $LOGINVAULT_HOME or ~/.loginvault)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.APP_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="list accounts").set_defaults(handler="cmd_list")

    p = sub.add_parser("code", help="print the current TOTP code of an account")
    p.add_argument("account", help="account name or id")
    p.add_argument("--wait", action="store_true", help="wait for a fresh window if the code is about to expire")
    p.set_defaults(handler="cmd_code")

    p = sub.add_parser("add", help="add an account")
    p.add_argument("name")
    p.add_argument("username")
    p.add_argument("password")
    p.add_argument("secret", help="Base32 TOTP secret")
    p.add_argument("--group", default=config.DEFAULT_GROUP)
    p.set_defaults(handler="cmd_add")

    p = sub.add_parser("delete", help="delete an account")
    p.add_argument("account", help="account name or id")
    p.set_defaults(handler="cmd_delete")

    p = sub.add_parser("import", help="import accounts from a name|username|password|secret file")
    p.add_argument("file")
    p.add_argument("--group", default=None, help="group for lines with only four fields")
    p.set_defaults(handler="cmd_import")

    p = sub.add_parser("backup", help="write a backup bundle")
    p.add_argument("destination")
    p.set_defaults(handler="cmd_backup")

    p = sub.add_parser("restore", help="restore a backup bundle")
    p.add_argument("source")
    p.set_defaults(handler="cmd_restore")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    try:
        app = LoginVaultApp(args.data_dir or get_default_data_dir(), verbose=args.verbose)
        return getattr(app, args.handler)(args)
    except InvalidSecret as e:
        print(f"Invalid TOTP secret: {e}", file=sys.stderr)
    except LookupError as e:
        print(e.args[0], file=sys.stderr)
    except (VaultError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
