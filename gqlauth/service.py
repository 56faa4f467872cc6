# gqlauth/service.py
"""
GraphQL execution service.

Holds the executable schema and the hook points the auth layer plugs into,
and runs operations with Ariadne:

- "pre_execution" hooks: hook(schema, document, context), run in order before
  every operation; a hook may return a schema to use for the rest of that
  operation (introspection filtering). A hook that raises GraphQLError fails
  the operation before execution
- "replace_schema" hooks: hook(new_schema), run before a new schema is swapped
  in, so resolvers of the new schema can be wrapped before any request sees it
- ready callbacks: run once, before the first operation

The context of an introspection operation gains an "__introspection_filter__"
entry holding the filtered schema, keyed by filter and parsed document.
Other operations leave the context untouched.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from ariadne import format_error, graphql
from graphql import DocumentNode, GraphQLError, GraphQLSchema, parse

from gqlauth.utils.awaitable import maybe_await
from gqlauth.utils.logger import write_log

HOOK_NAMES = ("pre_execution", "replace_schema")


def _parse_operation(data: Any) -> Optional[DocumentNode]:
    if not isinstance(data, dict) or not isinstance(data.get("query"), str):
        return None
    try:
        return parse(data["query"])
    except GraphQLError:
        # reported by Ariadne with the rest of the request validation
        return None


class GraphQLService:
    def __init__(self, schema: GraphQLSchema, debug: bool = False):
        self.schema = schema
        self.debug = debug
        self._hooks: Dict[str, List[Callable[..., Any]]] = {name: [] for name in HOOK_NAMES}
        self._ready_callbacks: List[Callable[[], Any]] = []
        self._is_ready = False

    def add_hook(self, name: str, hook: Callable[..., Any]):
        if name not in self._hooks:
            raise ValueError(f"unknown hook: {name}")
        self._hooks[name].append(hook)

    def hooks(self, name: str) -> List[Callable[..., Any]]:
        return list(self._hooks[name])

    def on_ready(self, callback: Callable[[], Any]):
        if self._is_ready:
            callback()
        else:
            self._ready_callbacks.append(callback)

    def ready(self):
        if self._is_ready:
            return
        self._is_ready = True
        callbacks, self._ready_callbacks = self._ready_callbacks, []
        for callback in callbacks:
            callback()

    async def replace_schema(self, schema: GraphQLSchema):
        for hook in self.hooks("replace_schema"):
            await maybe_await(hook(schema))
        # in-flight operations keep the schema they started with
        self.schema = schema
        write_log({"event": "schema_replaced", "types": len(schema.type_map)})

    async def execute(self, data: Any, context_value: Any = None) -> Tuple[bool, dict]:
        self.ready()
        context = {} if context_value is None else context_value
        schema = self.schema

        document = _parse_operation(data)
        if document is None:
            success, result = await graphql(schema, data, context_value=context, debug=self.debug)
        else:
            try:
                for hook in self.hooks("pre_execution"):
                    replacement = await maybe_await(hook(schema, document, context))
                    if replacement is not None:
                        schema = replacement
            except GraphQLError as error:
                success, result = False, {"errors": [format_error(error, self.debug)]}
            else:
                success, result = await graphql(schema, data, context_value=context, debug=self.debug)

        if result.get("errors"):
            write_log({
                "event": "graphql_request",
                "operation": data.get("operationName") if isinstance(data, dict) else None,
                "success": success,
                "errors": [error.get("message") for error in result["errors"]],
            })
        return success, result
