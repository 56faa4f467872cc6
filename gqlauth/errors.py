# gqlauth/errors.py
"""
Error kinds raised by the auth layer.

All errors share one exception class; the kind is carried by `code` and the
message text comes from `format_error`, so callers match on codes rather than
on exception subclasses.
"""
from typing import Any

AUTH_ERR_INVALID_OPTS = "AUTH_ERR_INVALID_OPTS"
AUTH_ERR_FAILED_POLICY_CHECK = "AUTH_ERR_FAILED_POLICY_CHECK"
AUTH_ERR_UNSUPPORTED_REPLACEMENT = "AUTH_ERR_UNSUPPORTED_REPLACEMENT"
AUTH_ERR_INVALID_OVERRIDE = "AUTH_ERR_INVALID_OVERRIDE"
AUTH_ERR_NULL_REPLACEMENT = "AUTH_ERR_NULL_REPLACEMENT"

ERROR_MESSAGES = {
    AUTH_ERR_INVALID_OPTS: "Invalid options: %s",
    AUTH_ERR_FAILED_POLICY_CHECK: "Failed auth policy check on %s",
    AUTH_ERR_UNSUPPORTED_REPLACEMENT: "Replacement value is only supported on String fields, %s is %s",
    AUTH_ERR_INVALID_OVERRIDE: "Invalid value override on %s: must be a string or a function",
    AUTH_ERR_NULL_REPLACEMENT: "Null replacement is not allowed on non-null field %s of type %s",
}

# Configuration kinds: fatal, never retried
CONFIG_ERRORS = {
    AUTH_ERR_INVALID_OPTS,
    AUTH_ERR_UNSUPPORTED_REPLACEMENT,
    AUTH_ERR_INVALID_OVERRIDE,
    AUTH_ERR_NULL_REPLACEMENT,
}


def format_error(code: str, *args: Any) -> str:
    return ERROR_MESSAGES[code] % args


class AuthError(Exception):
    def __init__(self, code: str, *args: Any):
        super().__init__(format_error(code, *args))
        self.code = code

    @property
    def is_config_error(self) -> bool:
        return self.code in CONFIG_ERRORS


def invalid_opts(detail: str) -> AuthError:
    return AuthError(AUTH_ERR_INVALID_OPTS, detail)


def failed_policy_check(name: str) -> AuthError:
    return AuthError(AUTH_ERR_FAILED_POLICY_CHECK, name)
