"""
Pytest config.

Pins the repo root on sys.path so the local `gqlauth` package imports even
when a global pytest entrypoint is used without installing the project.
"""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


AUTH_TYPE_DEFS = """
directive @auth(requires: Role = ADMIN) on OBJECT | FIELD_DEFINITION

enum Role {
  ADMIN
  USER
}

type Query {
  add(x: Int, y: Int): Int @auth(requires: ADMIN)
  subtract(x: Int, y: Int): Int
}
"""


def request_context(**headers: str) -> dict:
    """Execution context as the Flask route builds it, with a fake request."""
    return {"request": SimpleNamespace(headers=headers), "token": None}


def header_auth_context(context: dict) -> dict:
    return {"identity": context["request"].headers.get("x-user")}


async def admin_only_policy(policy, parent, args, context, info):
    return context["auth"]["identity"] == "admin"


@pytest.fixture
def arithmetic_query():
    from ariadne import QueryType

    query = QueryType()

    @query.field("add")
    async def resolve_add(_, info, x, y):
        return x + y

    @query.field("subtract")
    async def resolve_subtract(_, info, x, y):
        return x - y

    return query


@pytest.fixture
def arithmetic_service(arithmetic_query):
    from ariadne import make_executable_schema

    from gqlauth.service import GraphQLService

    return GraphQLService(make_executable_schema(AUTH_TYPE_DEFS, arithmetic_query))
