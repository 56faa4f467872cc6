# gqlauth/utils/awaitable.py
from inspect import isawaitable
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Predicates, context builders and resolvers may be sync or async."""
    if isawaitable(value):
        return await value
    return value
