"""
Parsing of pasted account lists.

One account per line, fields separated by "|":

    name|username|password|otpSecret[|group[|server[|character[|autoSelectServer[|autoSelectCharacter]]]]]
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from . import config
from .errors import InvalidSecret
from .storage import Account
from .totp import TotpGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchLineError:
    line_number: int
    line: str
    reason: str


@dataclass
class BatchResult:
    accounts: List[Account] = field(default_factory=list)
    errors: List[BatchLineError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _parse_int(text: str, default: int, low: int, high: int) -> int:
    if not text:
        return default
    value = int(text)
    if not low <= value <= high:
        raise ValueError
    return value


def _parse_bool(text: str) -> bool:
    if not text:
        return False
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError


def parse_batch(text: str, default_group: str = config.DEFAULT_GROUP,
                totp: Optional[TotpGenerator] = None) -> BatchResult:
    """
    Parse a block of account lines.

    Valid lines become new accounts; every rejected line is reported with
    its 1-based line number and the reason. Lines with only four fields go
    into `default_group`; a group field that is present but empty means
    config.DEFAULT_GROUP.
    """
    totp = totp or TotpGenerator()
    result = BatchResult()
    names = set()

    for number, raw in enumerate((text or "").splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue

        def reject(reason: str) -> None:
            result.errors.append(BatchLineError(number, line, reason))

        parts = [p.strip() for p in line.split(config.BATCH_FIELD_SEPARATOR)]
        field_count = len(parts)
        if not config.BATCH_MIN_FIELDS <= field_count <= config.BATCH_MAX_FIELDS:
            reject(f"expected {config.BATCH_MIN_FIELDS}-{config.BATCH_MAX_FIELDS} fields, found {field_count}")
            continue
        parts += [""] * (config.BATCH_MAX_FIELDS - len(parts))
        name, username, password, otp_secret, group, server_text, character_text, auto_server_text, auto_character_text = parts

        if not (name and username and password and otp_secret):
            reject("name, username, password and secret are required")
            continue

        try:
            server = _parse_int(server_text, config.DEFAULT_SERVER, config.SERVER_MIN, config.SERVER_MAX)
        except ValueError:
            reject(f"server must be {config.SERVER_MIN}-{config.SERVER_MAX}")
            continue
        try:
            character = _parse_int(character_text, config.DEFAULT_CHARACTER,
                                   config.CHARACTER_MIN, config.CHARACTER_MAX)
        except ValueError:
            reject(f"character must be {config.CHARACTER_MIN}-{config.CHARACTER_MAX}")
            continue
        try:
            auto_select_server = _parse_bool(auto_server_text)
            auto_select_character = _parse_bool(auto_character_text)
        except ValueError:
            reject("auto-select values must be true or false")
            continue

        try:
            totp.generate_totp(otp_secret)
        except InvalidSecret:
            reject("invalid TOTP secret")
            continue

        if name in names:
            reject(f"duplicate account name {name!r}")
            continue
        names.add(name)

        # An explicit but empty group field means the fixed default group.
        if field_count > config.BATCH_MIN_FIELDS:
            group = group or config.DEFAULT_GROUP
        else:
            group = default_group or config.DEFAULT_GROUP

        result.accounts.append(Account(
            name=name,
            username=username,
            password=password,
            otp_secret=otp_secret,
            group=group,
            server=server,
            character=character,
            last_character=character,
            auto_select_server=auto_select_server,
            auto_select_character=auto_select_character,
        ))

    logger.info(f"Batch parsed: {len(result.accounts)} accounts, {len(result.errors)} errors")
    return result
