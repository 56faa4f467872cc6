# gqlauth/auth/policy.py
"""
Policy extraction.

A policy map indexes the authorization requirements of a schema:

    {
        "Query": {"add": [<DirectiveNode @auth>]},
        "User": {"__typePolicy": [<DirectiveNode @auth>], "email": [...]},
    }

Each slot holds the ordered policies for that element. Directive mode yields
one entry per matching directive occurrence (several for repeatable
directives); external mode wraps each caller-supplied value in a single-item
list. The type-level slot is always inserted before the field slots of the
same type.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from graphql import (
    DirectiveNode,
    GraphQLNamedType,
    GraphQLSchema,
    is_input_object_type,
    is_interface_type,
    is_object_type,
    value_from_ast_untyped,
)

TYPE_POLICY = "__typePolicy"

PolicyMap = Dict[str, Dict[str, List[Any]]]


def is_introspection_type_name(name: str) -> bool:
    return name.startswith("__")


def has_fields(type_: GraphQLNamedType) -> bool:
    return is_object_type(type_) or is_interface_type(type_) or is_input_object_type(type_)


def _directive_nodes(element: Any) -> Iterable[DirectiveNode]:
    nodes = [getattr(element, "ast_node", None)]
    nodes.extend(getattr(element, "extension_ast_nodes", None) or ())
    for node in nodes:
        if node is None:
            continue
        yield from node.directives or ()


def find_directives(element: Any, directive_name: str) -> List[DirectiveNode]:
    """All directive annotations named `directive_name`, in source order."""
    return [node for node in _directive_nodes(element) if node.name.value == directive_name]


def directive_arguments(node: DirectiveNode, variables: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Literal arguments of a directive annotation as plain Python values."""
    return {
        argument.name.value: value_from_ast_untyped(argument.value, variables)
        for argument in node.arguments or ()
    }


def extract_policy(schema: GraphQLSchema, directive_name: str) -> PolicyMap:
    policy: PolicyMap = {}
    for type_name, type_ in schema.type_map.items():
        if is_introspection_type_name(type_name):
            continue

        type_directives = find_directives(type_, directive_name)
        if type_directives:
            policy.setdefault(type_name, {})[TYPE_POLICY] = type_directives

        if not has_fields(type_):
            continue
        for field_name, field in type_.fields.items():
            field_directives = find_directives(field, directive_name)
            if field_directives:
                policy.setdefault(type_name, {})[field_name] = field_directives
    return policy


def normalize_external_policy(raw: Mapping[str, Mapping[str, Any]]) -> PolicyMap:
    """
    Bring a caller-supplied policy table into policy map form. Shape errors
    are rejected earlier, by option validation.
    """
    policy: PolicyMap = {}
    for type_name, type_policy in raw.items():
        entry: Dict[str, List[Any]] = {}
        if TYPE_POLICY in type_policy:
            entry[TYPE_POLICY] = [type_policy[TYPE_POLICY]]
        for field_name, field_policy in type_policy.items():
            if field_name != TYPE_POLICY:
                entry[field_name] = [field_policy]
        policy[type_name] = entry
    return policy


def policy_count(policy: PolicyMap) -> int:
    return sum(len(slot) for type_policy in policy.values() for slot in type_policy.values())
