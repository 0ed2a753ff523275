import re
from typing import Optional, Tuple

from domain.entity.command import (
    CancelDeliveryCommand,
    Command,
    MalformedCommand,
    RelayCommand,
    StageDeliveryCommand,
    UnknownCommand,
)

COMMAND_MARKER = "/"

RELAY_COMMAND = "reply"
STAGE_COMMANDS = {"file": 1, "file2": 2}
CANCEL_COMMAND = "cancel"

USAGE = {
    "reply": "Usage: /reply <userId> <message>",
    "file": "Usage: /file <userId> Optional caption",
    "file2": "Usage: /file2 <userId> Optional caption",
}

_COMMAND_RE = re.compile(r"^/(\S+)\s*(.*)$", re.DOTALL)
_ARGS_RE = re.compile(r"^(\S+)(?:\s+(.*))?$", re.DOTALL)


def is_command(text: Optional[str]) -> bool:
    return bool(text) and text.lstrip().startswith(COMMAND_MARKER)


def split_command(text: str) -> Tuple[str, str]:
    """Разделить '/name@Bot args' на ('name', 'args')"""
    match = _COMMAND_RE.match(text.strip())
    if not match:
        return "", ""
    name = match.group(1).split("@", 1)[0].lower()
    return name, match.group(2).strip()


def _split_target(args: str) -> Tuple[Optional[str], Optional[str]]:
    match = _ARGS_RE.match(args)
    if not match:
        return None, None
    remainder = (match.group(2) or "").strip()
    return match.group(1), remainder or None


def parse_command(text: Optional[str]) -> Command:
    """Разобрать команду оператора в типизированную структуру"""
    if not is_command(text):
        return UnknownCommand(name="")

    name, args = split_command(text)

    if name == RELAY_COMMAND:
        user_id, message = _split_target(args)
        if not user_id or not message:
            return MalformedCommand(name=name, usage=USAGE[name])
        return RelayCommand(user_id=user_id, text=message)

    if name in STAGE_COMMANDS:
        user_id, caption = _split_target(args)
        if not user_id:
            return MalformedCommand(name=name, usage=USAGE[name])
        return StageDeliveryCommand(user_id=user_id, caption=caption, count=STAGE_COMMANDS[name])

    if name == CANCEL_COMMAND:
        return CancelDeliveryCommand()

    return UnknownCommand(name=name)
