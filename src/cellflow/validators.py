"""Common validators for Field. Each returns an error message or None."""

from __future__ import annotations

import re
from collections.abc import Sized
from typing import Callable, TypeVar

T = TypeVar("T")

Validator = Callable[[T], "str | None"]

_EMAIL = re.compile(r"^[\w.-]+@([\w-]+\.)+[\w-]{2,}$")


def required(message: str | None = None) -> Validator:
    def check(value):
        empty = value is None or (isinstance(value, Sized) and len(value) == 0)
        return (message or "This field is required") if empty else None

    return check


def min_length(length: int, message: str | None = None) -> Validator:
    return lambda value: (
        (message or f"Must be at least {length} characters") if len(value) < length else None
    )


def max_length(length: int, message: str | None = None) -> Validator:
    return lambda value: (
        (message or f"Must be at most {length} characters") if len(value) > length else None
    )


def email(message: str | None = None) -> Validator:
    return lambda value: None if _EMAIL.match(value) else (message or "Invalid email address")


def pattern(regex: str | re.Pattern, message: str | None = None) -> Validator:
    compiled = re.compile(regex)
    return lambda value: None if compiled.search(value) else (message or "Invalid format")


def custom(test: Callable[[T], bool], message: str | None = None) -> Validator:
    return lambda value: None if test(value) else (message or "Invalid value")
