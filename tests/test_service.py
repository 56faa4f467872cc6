from __future__ import annotations

import pytest
from graphql import build_schema

from gqlauth.plugin import AUTH_CONTEXT_KEY, register_auth

from conftest import request_context


def test_unknown_hook_name_is_rejected(arithmetic_service):
    with pytest.raises(ValueError):
        arithmetic_service.add_hook("on_request", lambda *_: None)


def test_ready_callbacks_run_once_and_late_ones_run_immediately(arithmetic_service):
    calls = []
    arithmetic_service.on_ready(lambda: calls.append("early"))
    assert calls == []

    arithmetic_service.ready()
    arithmetic_service.ready()
    assert calls == ["early"]

    arithmetic_service.on_ready(lambda: calls.append("late"))
    assert calls == ["early", "late"]


@pytest.mark.asyncio
async def test_pre_execution_hook_can_swap_schema_for_one_operation(arithmetic_service):
    other = build_schema("type Query { other: String }")
    other.query_type.fields["other"].resolve = lambda *_: "swapped"

    async def swap(schema, document, context):
        return other if context.get("swap") else None

    arithmetic_service.add_hook("pre_execution", swap)

    _, result = await arithmetic_service.execute({"query": "{ other }"}, context_value={"swap": True})
    assert result == {"data": {"other": "swapped"}}

    _, result = await arithmetic_service.execute({"query": "{ subtract(x: 5, y: 1) }"})
    assert result == {"data": {"subtract": 4}}


@pytest.mark.asyncio
async def test_hooks_skipped_for_unparsable_operation(arithmetic_service):
    calls = []
    arithmetic_service.add_hook("pre_execution", lambda *args: calls.append(args))

    success, result = await arithmetic_service.execute({"query": "{ subtract("})

    assert success is False
    assert result["errors"]
    assert calls == []


@pytest.mark.asyncio
async def test_auth_contexts_of_all_registrations_are_merged(arithmetic_service):
    seen = []

    def first_context(context):
        return {"identity": context["request"].headers.get("x-user")}

    async def second_context(context):
        # earlier registrations already contributed
        return {"roles": ["ADMIN"] if context[AUTH_CONTEXT_KEY]["identity"] == "admin" else []}

    def record(policy, parent, args, context, info):
        seen.append(dict(context[AUTH_CONTEXT_KEY]))
        return True

    register_auth(arithmetic_service, auth_directive="auth", auth_context=first_context, apply_policy=record)
    register_auth(arithmetic_service, auth_directive="auth", auth_context=second_context, apply_policy=record)

    _, result = await arithmetic_service.execute(
        {"query": "{ add(x: 1, y: 1) }"}, context_value=request_context(**{"x-user": "admin"})
    )

    assert result == {"data": {"add": 2}}
    assert seen == [{"identity": "admin", "roles": ["ADMIN"]}] * 2


@pytest.mark.asyncio
async def test_auth_context_returning_none_leaves_context_untouched(arithmetic_service):
    register_auth(arithmetic_service, auth_directive="auth", auth_context=lambda context: None, apply_policy=lambda *_: True)

    context = {}
    await arithmetic_service.execute({"query": "{ add(x: 1, y: 1) }"}, context_value=context)
    assert AUTH_CONTEXT_KEY not in context


@pytest.mark.asyncio
async def test_execute_without_context_value(arithmetic_service):
    success, result = await arithmetic_service.execute({"query": "{ add(x: 1, y: 2) }"})
    assert success is True
    assert result == {"data": {"add": 3}}
