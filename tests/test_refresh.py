from __future__ import annotations

import pytest
from ariadne import QueryType, make_executable_schema

from gqlauth.auth.guard import GuardedResolver
from gqlauth.filtering.introspection import get_filter
from gqlauth.plugin import register_auth

from conftest import AUTH_TYPE_DEFS, admin_only_policy, header_auth_context, request_context

REFRESHED_TYPE_DEFS = AUTH_TYPE_DEFS.replace(
    "subtract(x: Int, y: Int): Int",
    "subtract(x: Int, y: Int): Int\n  multiply(x: Int, y: Int): Int @auth(requires: ADMIN)",
)


@pytest.fixture
def refreshed_schema():
    query = QueryType()
    query.set_field("subtract", lambda *_, x, y: x - y)
    query.set_field("multiply", lambda *_, x, y: x * y)
    return make_executable_schema(REFRESHED_TYPE_DEFS, query)


@pytest.mark.asyncio
async def test_replaced_schema_is_guarded_before_use(arithmetic_service, refreshed_schema):
    register_auth(
        arithmetic_service,
        auth_directive="auth",
        auth_context=header_auth_context,
        apply_policy=admin_only_policy,
    )

    await arithmetic_service.replace_schema(refreshed_schema)

    assert arithmetic_service.schema is refreshed_schema
    assert isinstance(refreshed_schema.query_type.fields["multiply"].resolve, GuardedResolver)

    _, result = await arithmetic_service.execute(
        {"query": "{ multiply(x: 2, y: 3) subtract(x: 2, y: 3) }"},
        context_value=request_context(**{"x-user": "user"}),
    )
    assert result["data"] == {"multiply": None, "subtract": -1}
    assert result["errors"][0]["message"] == "Failed auth policy check on multiply"

    _, result = await arithmetic_service.execute(
        {"query": "{ multiply(x: 2, y: 3) }"},
        context_value=request_context(**{"x-user": "admin"}),
    )
    assert result == {"data": {"multiply": 6}}


@pytest.mark.asyncio
async def test_replaced_schema_updates_introspection_policy(arithmetic_service, refreshed_schema):
    registration = register_auth(
        arithmetic_service,
        auth_directive="auth",
        auth_context=header_auth_context,
        apply_policy=admin_only_policy,
        filter_schema=True,
    )

    await arithmetic_service.replace_schema(refreshed_schema)

    assert set(registration.policy["Query"]) == {"add", "multiply"}
    assert get_filter(arithmetic_service).registrations[0].policy_map is registration.policy

    _, result = await arithmetic_service.execute(
        {"query": '{ __type(name: "Query") { fields { name } } }'},
        context_value=request_context(**{"x-user": "user"}),
    )
    assert result == {"data": {"__type": {"fields": [{"name": "subtract"}]}}}


@pytest.mark.asyncio
async def test_replace_schema_runs_hooks_before_swap(arithmetic_service, refreshed_schema):
    seen = []

    def hook(schema):
        seen.append((schema, arithmetic_service.schema))

    original = arithmetic_service.schema
    arithmetic_service.add_hook("replace_schema", hook)
    await arithmetic_service.replace_schema(refreshed_schema)

    assert seen == [(refreshed_schema, original)]
