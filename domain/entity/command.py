from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class RelayCommand:
    """/reply <userId> <message...>"""
    user_id: str
    text: str


@dataclass(frozen=True)
class StageDeliveryCommand:
    """/file и /file2 <userId> [caption...]"""
    user_id: str
    caption: Optional[str]
    count: int


@dataclass(frozen=True)
class CancelDeliveryCommand:
    """/cancel"""


@dataclass(frozen=True)
class MalformedCommand:
    name: str
    usage: str


@dataclass(frozen=True)
class UnknownCommand:
    name: str


Command = Union[RelayCommand, StageDeliveryCommand, CancelDeliveryCommand, MalformedCommand, UnknownCommand]
