from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

EnumType = TypeVar("EnumType", bound=Enum)


def db_enum(enum_cls: type[EnumType], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class EnumList(TypeDecorator):
    """Ordered list of enum members stored as a JSONB array of their values."""

    impl = JSONB
    cache_ok = True

    def __init__(self, enum_cls: type[Enum], *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return [self.enum_cls(item).value for item in value]

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return [self.enum_cls(item) for item in value]
