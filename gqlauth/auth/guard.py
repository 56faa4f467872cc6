# gqlauth/auth/guard.py
"""
Resolver guards.

Every protected field gets one GuardedResolver in place of its resolver. The
guard holds the policy checks registered against the field, in registration
order, and the field's original resolver:

- each check runs apply_policy(policy, parent, args, context, info)
- an Exception result is raised as the field error
- a falsy result raises "Failed auth policy check on <name>", or, in
  replacement mode, returns the configured replacement value
- once every check approves, the original resolver runs

Reference resolvers (Ariadne federation, `__resolve_reference__` on the object
type) are guarded the same way, reporting the type name in errors.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ariadne.utils import type_get_extension, type_set_extension
from graphql import (
    GraphQLField,
    GraphQLObjectType,
    GraphQLSchema,
    default_field_resolver,
    get_nullable_type,
    is_interface_type,
    is_non_null_type,
    is_object_type,
    is_scalar_type,
)

from gqlauth.auth.policy import TYPE_POLICY, PolicyMap
from gqlauth.config import AuthOptions, OutputPolicyErrors
from gqlauth.errors import (
    AUTH_ERR_INVALID_OVERRIDE,
    AUTH_ERR_NULL_REPLACEMENT,
    AUTH_ERR_UNSUPPORTED_REPLACEMENT,
    AuthError,
    failed_policy_check,
)
from gqlauth.utils.awaitable import maybe_await
from gqlauth.utils.logger import log_denial

REFERENCE_RESOLVER = "__resolve_reference__"


@dataclass(frozen=True)
class PolicyCheck:
    policy: Any
    apply_policy: Callable[..., Any]
    output_policy_errors: OutputPolicyErrors
    owner: Any = None


class GuardedResolver:
    def __init__(self, name: str, resolver: Optional[Callable[..., Any]]):
        self.name = name
        self.resolver = resolver or default_field_resolver
        self.checks: List[PolicyCheck] = []

    def set_checks(self, owner: Any, checks: List[PolicyCheck]):
        """
        Install the checks of one registration. A registration that guards the
        same field again (schema replaced by itself) keeps its slot instead of
        stacking a second copy of its checks.
        """
        positions = [i for i, check in enumerate(self.checks) if check.owner is owner]
        if not positions:
            self.checks.extend(checks)
            return
        kept = [check for check in self.checks if check.owner is not owner]
        index = positions[0]
        self.checks = kept[:index] + list(checks) + kept[index:]

    def add_check(self, check: PolicyCheck):
        self.checks.append(check)

    async def __call__(self, parent: Any, info: Any, **args: Any) -> Any:
        for check in self.checks:
            result = await maybe_await(check.apply_policy(check.policy, parent, args, info.context, info))
            if isinstance(result, Exception):
                raise result
            if not result:
                return await self._deny(check, parent, info, args, info.return_type)
        return await maybe_await(self.resolver(parent, info, **args))

    async def _original_value(self, parent: Any, info: Any, args: Dict[str, Any]) -> Any:
        return await maybe_await(self.resolver(parent, info, **args))

    async def _deny(self, check: PolicyCheck, parent: Any, info: Any, args: Dict[str, Any], return_type: Any) -> Any:
        path = info.path.as_list() if getattr(info, "path", None) is not None else None
        output = check.output_policy_errors
        if output.enabled:
            log_denial(self.name, check.policy, path=path)
            raise failed_policy_check(self.name)

        # String or String! only, never a list of strings
        nullable_type = get_nullable_type(return_type)
        if not (is_scalar_type(nullable_type) and nullable_type.name == "String"):
            raise AuthError(AUTH_ERR_UNSUPPORTED_REPLACEMENT, self.name, str(return_type))

        override = output.value_override
        if override is None and is_non_null_type(return_type):
            raise AuthError(AUTH_ERR_NULL_REPLACEMENT, self.name, str(return_type))
        log_denial(self.name, check.policy, replaced=True, path=path)
        if override is None or isinstance(override, str):
            return override
        if callable(override):
            return await maybe_await(override(await self._original_value(parent, info, args)))
        raise AuthError(AUTH_ERR_INVALID_OVERRIDE, self.name)


class GuardedReferenceResolver(GuardedResolver):
    """
    Guard for `resolve_reference(type_object, info, representation)`.

    Predicates see the representation as parent and an info whose field_name
    is the reference entry point, not the `_entities` field.
    """

    def __init__(self, type_: GraphQLObjectType, resolver: Callable[..., Any]):
        super().__init__(type_.name, resolver)
        self.type = type_
        self.field_name = REFERENCE_RESOLVER

    async def __call__(self, obj: Any, info: Any, representation: Any) -> Any:
        policy_info = info._replace(field_name=self.field_name)
        for check in self.checks:
            result = await maybe_await(check.apply_policy(check.policy, representation, {}, info.context, policy_info))
            if isinstance(result, Exception):
                raise result
            if not result:
                return await self._deny(check, representation, info, {"representation": representation}, self.type)
        return await maybe_await(self.resolver(obj, info, representation))

    async def _original_value(self, parent: Any, info: Any, args: Dict[str, Any]) -> Any:
        return await maybe_await(self.resolver(self.type, info, args["representation"]))


def guard(policy: Any, resolver: Optional[Callable[..., Any]], apply_policy: Callable[..., Any],
          output_policy_errors: Optional[OutputPolicyErrors] = None, name: str = "") -> GuardedResolver:
    """
    Wrap `resolver` with one policy check. Wrapping an existing guard composes:
    the new check runs after the ones already registered.
    """
    check = PolicyCheck(policy, apply_policy, output_policy_errors or OutputPolicyErrors())
    if isinstance(resolver, GuardedResolver):
        resolver.add_check(check)
        return resolver
    guarded = GuardedResolver(name, resolver)
    guarded.add_check(check)
    return guarded


def _field_guard(field: GraphQLField, name: str) -> GuardedResolver:
    if not isinstance(field.resolve, GuardedResolver):
        field.resolve = GuardedResolver(name, field.resolve)
    return field.resolve


def _reference_guard(type_: GraphQLObjectType) -> GuardedReferenceResolver:
    # Ariadne keeps reference resolvers in the type's extensions
    resolver = type_get_extension(type_, REFERENCE_RESOLVER)
    if not isinstance(resolver, GuardedReferenceResolver):
        resolver = GuardedReferenceResolver(type_, resolver)
        type_set_extension(type_, REFERENCE_RESOLVER, resolver)
    return resolver


def _checks(policies: List[Any], options: AuthOptions, owner: Any) -> List[PolicyCheck]:
    return [PolicyCheck(policy, options.apply_policy, options.output_policy_errors, owner) for policy in policies]


def register_guards(schema: GraphQLSchema, policy_map: PolicyMap, options: AuthOptions, owner: Any = None) -> int:
    """
    Apply a policy map to the resolvers of `schema`, in place. Types and
    fields the map names but the schema lacks are skipped. Returns the number
    of guarded resolvers.
    """
    owner = owner if owner is not None else options
    pending: Dict[int, Tuple[GuardedResolver, List[PolicyCheck]]] = {}

    def collect(guarded: GuardedResolver, policies: List[Any]):
        entry = pending.setdefault(id(guarded), (guarded, []))
        entry[1].extend(_checks(policies, options, owner))

    for type_name, type_policy in policy_map.items():
        type_ = schema.get_type(type_name)
        if type_ is None or not (is_object_type(type_) or is_interface_type(type_)):
            continue

        # type-level policy first: it gates every field of the type
        type_policies = type_policy.get(TYPE_POLICY)
        if type_policies:
            for field_name, field in type_.fields.items():
                collect(_field_guard(field, field_name), type_policies)
            if is_object_type(type_) and callable(type_get_extension(type_, REFERENCE_RESOLVER)):
                collect(_reference_guard(type_), type_policies)

        for field_name, policies in type_policy.items():
            if field_name == TYPE_POLICY:
                continue
            field = type_.fields.get(field_name)
            if field is None:
                continue
            collect(_field_guard(field, field_name), policies)

    for guarded, checks in pending.values():
        guarded.set_checks(owner, checks)
    return len(pending)
