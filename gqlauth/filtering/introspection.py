# gqlauth/filtering/introspection.py
"""
Introspection filtering.

Every registration with filter_schema enabled contributes its policy map and
predicate to the IntrospectionFilter of its service. The service gets exactly
one pre-execution hook for all of them, installed once the service is ready so
that it runs after the auth context hooks.

For introspection operations the hook evaluates every policy with synthetic
resolver input, merges the outcomes (a type or field hidden by one
registration stays hidden) and serves a pruned schema for that operation. When
nothing is hidden the original schema is kept. A pruned schema that is no
longer valid (Query left without fields) fails the operation with a
GraphQLError instead of reaching the executor.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from weakref import WeakKeyDictionary

from graphql import (
    DocumentNode,
    FieldNode,
    GraphQLError,
    GraphQLSchema,
    OperationDefinitionNode,
    OperationType,
    validate_schema,
)

from gqlauth.auth.policy import TYPE_POLICY, PolicyMap, has_fields
from gqlauth.filtering.prune import FilterMap, prune_schema
from gqlauth.utils.awaitable import maybe_await
from gqlauth.utils.logger import AUTH_STREAM, write_log

INTROSPECTION_FIELDS = ("__schema", "__type")
FILTER_CACHE_KEY = "__introspection_filter__"


def is_introspection(document: DocumentNode) -> bool:
    for definition in document.definitions:
        if not isinstance(definition, OperationDefinitionNode):
            continue
        # a mutation or subscription ends the scan
        if definition.operation != OperationType.QUERY:
            break
        if any(
            isinstance(selection, FieldNode) and selection.name.value in INTROSPECTION_FIELDS
            for selection in definition.selection_set.selections
        ):
            return True
    return False


@dataclass(frozen=True)
class IntrospectionInfo:
    """
    Stand-in for GraphQLResolveInfo while filtering: no resolver has run, so
    there is no selection set, parent value or variables.
    """
    field_name: str
    return_type: Any
    parent_type: Any
    schema: GraphQLSchema
    context: Any = None
    fragments: Dict[str, Any] = field(default_factory=dict)
    variable_values: Dict[str, Any] = field(default_factory=dict)
    path: Any = None


@dataclass
class PolicyRegistration:
    owner: Any
    policy_map: PolicyMap
    apply_policy: Callable[..., Any]


class IntrospectionFilter:
    def __init__(self):
        self.registrations: List[PolicyRegistration] = []

    def register(self, owner: Any, policy_map: PolicyMap, apply_policy: Callable[..., Any]):
        self.registrations.append(PolicyRegistration(owner, policy_map, apply_policy))

    def update_policy(self, owner: Any, policy_map: PolicyMap):
        for registration in self.registrations:
            if registration.owner is owner:
                registration.policy_map = policy_map

    async def _evaluate(self, registration: PolicyRegistration, policies: List[Any], context: Any,
                        info: IntrospectionInfo) -> bool:
        for policy in policies:
            try:
                # no parent value and no arguments exist before execution
                result = await maybe_await(registration.apply_policy(policy, None, {}, context, info))
            except Exception as e:
                write_log({
                    "event": "introspection_policy_error",
                    "type": info.parent_type.name,
                    "field": info.field_name,
                    "error": str(e),
                }, stream=AUTH_STREAM)
                return False
            if isinstance(result, Exception) or not result:
                return False
        return True

    async def build_filter_map(self, schema: GraphQLSchema, context: Any) -> Tuple[FilterMap, bool]:
        """
        Returns the merged filter map and whether everything evaluated as allowed.
        """
        filter_map: FilterMap = {}
        all_allowed = True
        for registration in self.registrations:
            for type_name, type_policy in registration.policy_map.items():
                if filter_map.get(type_name) is False:
                    continue
                schema_type = schema.get_type(type_name)
                if schema_type is None:
                    continue
                type_filter = filter_map.setdefault(type_name, {})
                fields = schema_type.fields if has_fields(schema_type) else {}

                for key, policies in type_policy.items():
                    if filter_map[type_name] is False or type_filter.get(key) is False:
                        continue
                    is_type_policy = key == TYPE_POLICY
                    if not is_type_policy and key not in fields:
                        continue

                    info = IntrospectionInfo(
                        field_name=key,
                        return_type=schema_type if is_type_policy else fields[key].type,
                        parent_type=schema_type,
                        schema=schema,
                        context=context,
                    )
                    allowed = await self._evaluate(registration, policies, context, info)
                    all_allowed = all_allowed and allowed
                    if is_type_policy:
                        if not allowed:
                            filter_map[type_name] = False
                    else:
                        type_filter[key] = allowed
        return filter_map, all_allowed

    async def filter_schema(self, schema: GraphQLSchema, context: Any) -> GraphQLSchema:
        filter_map, all_allowed = await self.build_filter_map(schema, context)
        if all_allowed:
            return schema
        write_log({
            "event": "introspection_filtered",
            "hidden_types": sorted(name for name, value in filter_map.items() if value is False),
            "hidden_fields": sorted(
                f"{name}.{field_name}"
                for name, value in filter_map.items() if isinstance(value, dict)
                for field_name, allowed in value.items() if allowed is False
            ),
        }, stream=AUTH_STREAM)
        pruned = prune_schema(schema, filter_map)
        errors = validate_schema(pruned)
        if errors:
            write_log({
                "event": "introspection_unavailable",
                "errors": [error.message for error in errors],
            }, stream=AUTH_STREAM)
            raise GraphQLError(f"Introspection unavailable: {errors[0].message}")
        return pruned

    async def __call__(self, schema: GraphQLSchema, document: DocumentNode, context: Any) -> Optional[GraphQLSchema]:
        if not is_introspection(document):
            return None
        if not isinstance(context, dict):
            return await self.filter_schema(schema, context)
        # evaluated once per operation
        cache = context.setdefault(FILTER_CACHE_KEY, {})
        key = (id(self), id(document))
        if key not in cache:
            cache[key] = await self.filter_schema(schema, context)
        return cache[key]


_filters: "WeakKeyDictionary[Any, IntrospectionFilter]" = WeakKeyDictionary()


def get_filter(service: Any) -> Optional[IntrospectionFilter]:
    return _filters.get(service)


def install_filter(service: Any, owner: Any, policy_map: PolicyMap, apply_policy: Callable[..., Any]) -> IntrospectionFilter:
    """
    Register a policy set for introspection filtering on `service`. The first
    registration creates the service's filter and schedules its hook.
    """
    schema_filter = _filters.get(service)
    if schema_filter is None:
        schema_filter = IntrospectionFilter()
        _filters[service] = schema_filter
        # must be the last pre-execution hook: auth context hooks run first
        service.on_ready(lambda: service.add_hook("pre_execution", schema_filter))
    schema_filter.register(owner, policy_map, apply_policy)
    return schema_filter


def update_policy(service: Any, owner: Any, policy_map: PolicyMap):
    schema_filter = _filters.get(service)
    if schema_filter is not None:
        schema_filter.update_policy(owner, policy_map)
