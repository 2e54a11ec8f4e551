"""Validation of request parameters, done before any storage or CA access."""

import re

from .errors import InputValidationError

_COMMON_NAME_RE = re.compile(r'^[a-fA-F0-9]{32}$')
_PROFILE_ID_RE = re.compile(r'^[a-zA-Z0-9.-]+$')


def common_name(value: str) -> str:
    if not _COMMON_NAME_RE.fullmatch(value or ''):
        raise InputValidationError("invalid \"common_name\"")
    return value


def profile_id(value: str) -> str:
    if not _PROFILE_ID_RE.fullmatch(value or ''):
        raise InputValidationError("invalid \"profile_id\"")
    return value
