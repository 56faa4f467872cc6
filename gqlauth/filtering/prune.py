# gqlauth/filtering/prune.py
"""
Schema pruning for filtered introspection.

prune_schema(schema, filter_map) builds a new, independent schema that only
contains what the filter map allows. The filter map comes from evaluating
policies for one request:

    {"Message": False}                     # whole type hidden
    {"Query": {"add": False}}              # single field hidden

Rules:
- a union marked False hides its member types too
- an input object with any hidden field is hidden entirely
- object/interface types implementing a hidden interface are hidden
- fields (and arguments) whose type is hidden are dropped
- types left without fields, and unions left without members, are hidden,
  repeating until nothing changes
- Query is never removed, only its fields. Mutation and Subscription are
  removed once no field is left on them. Subscription fields are not subject
  to the filter map, only to their type still existing

Types are rebuilt with thunks so that mutually referencing types resolve
against the new type map instead of recursing.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Set, Union

from graphql import (
    GraphQLArgument,
    GraphQLDirective,
    GraphQLField,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLUnionType,
    get_named_type,
    is_input_object_type,
    is_interface_type,
    is_list_type,
    is_non_null_type,
    is_object_type,
    is_union_type,
)

from gqlauth.auth.policy import is_introspection_type_name

FilterMap = Dict[str, Union[bool, Dict[str, bool]]]


def normalize_filter_map(schema: GraphQLSchema, filter_map: FilterMap) -> FilterMap:
    normalized: FilterMap = {}
    for type_name, type_filter in filter_map.items():
        schema_type = schema.get_type(type_name)

        # If a union type, set the union and its member types to not allowed
        if is_union_type(schema_type) and type_filter is False:
            normalized[type_name] = False
            for member in schema_type.types:
                normalized[member.name] = False

        # Input objects cannot be partially hidden
        elif is_input_object_type(schema_type) and isinstance(type_filter, Mapping) \
                and any(allowed is False for allowed in type_filter.values()):
            normalized[type_name] = False

        # Never re-allow a type an earlier entry already hid
        elif normalized.get(type_name) is not False:
            normalized[type_name] = type_filter
    return normalized


class SchemaPruner:
    def __init__(self, schema: GraphQLSchema, filter_map: FilterMap):
        self.schema = schema
        self.filter_map = normalize_filter_map(schema, filter_map)
        self.query = schema.query_type.name if schema.query_type else None
        self.mutation = schema.mutation_type.name if schema.mutation_type else None
        self.subscription = schema.subscription_type.name if schema.subscription_type else None
        self.allowed: Set[str] = set()
        self.visible: Dict[str, List[str]] = {}
        self.implemented: Dict[str, List[str]] = {}
        self.types: Dict[str, GraphQLNamedType] = {}

    # Name level: decide what survives

    def _kept(self, name: str) -> bool:
        return name == self.query

    def _exempt(self, name: str) -> bool:
        # roots marked False lose their fields instead of vanishing outright
        return name in (self.query, self.mutation, self.subscription)

    def _field_denied(self, type_name: str, field_name: str) -> bool:
        if type_name == self.subscription:
            return False
        type_filter = self.filter_map.get(type_name)
        # only a root can still be here while marked False: hide all of its fields
        if type_filter is False:
            return True
        return isinstance(type_filter, Mapping) and type_filter.get(field_name) is False

    def _visible_fields(self, type_: GraphQLNamedType) -> List[str]:
        visible = []
        for field_name, field in type_.fields.items():
            if is_input_object_type(type_) or not self._field_denied(type_.name, field_name):
                if get_named_type(field.type).name in self.allowed:
                    visible.append(field_name)
        return visible

    def _removable(self, type_: GraphQLNamedType) -> bool:
        if self._kept(type_.name):
            return False
        if is_object_type(type_) or is_interface_type(type_):
            if any(interface.name not in self.allowed for interface in type_.interfaces):
                return True
            return not self.visible[type_.name]
        if is_input_object_type(type_):
            return not self.visible[type_.name]
        if is_union_type(type_):
            return not any(member.name in self.allowed for member in type_.types)
        return False

    def _compatible_interfaces(self, type_: GraphQLNamedType) -> List[str]:
        fields = set(self.visible[type_.name])
        candidates = [
            interface.name for interface in type_.interfaces
            if interface.name in self.allowed and set(self.visible[interface.name]) <= fields
        ]
        # an implemented interface's own interfaces must stay implemented
        changed = True
        while changed:
            changed = False
            for name in list(candidates):
                parents = self.schema.type_map[name].interfaces
                if any(parent.name in self.allowed and parent.name not in candidates for parent in parents):
                    candidates.remove(name)
                    changed = True
        return candidates

    def resolve_allowed(self):
        type_map = self.schema.type_map
        self.allowed = {
            name for name in type_map
            if not is_introspection_type_name(name)
            and (self.filter_map.get(name) is not False or self._exempt(name))
        }

        while True:
            self.visible = {
                name: self._visible_fields(type_)
                for name, type_ in type_map.items()
                if name in self.allowed
                and (is_object_type(type_) or is_interface_type(type_) or is_input_object_type(type_))
            }
            removed = {name for name in list(self.allowed) if self._removable(type_map[name])}
            if not removed:
                break
            self.allowed -= removed

        self.implemented = {
            name: self._compatible_interfaces(type_map[name])
            for name in self.visible
            if is_object_type(type_map[name]) or is_interface_type(type_map[name])
        }

    # Object level: rebuild against the pruned type map

    def _build_type(self, type_: Any) -> Any:
        if is_non_null_type(type_):
            return GraphQLNonNull(self._build_type(type_.of_type))
        if is_list_type(type_):
            return GraphQLList(self._build_type(type_.of_type))
        return self.types[type_.name]

    def _arguments(self, args: Dict[str, GraphQLArgument]) -> Dict[str, GraphQLArgument]:
        # a hidden input type must not be reachable even as an argument
        pruned = {}
        for arg_name, argument in args.items():
            if get_named_type(argument.type).name in self.allowed:
                kwargs = argument.to_kwargs()
                kwargs["type_"] = self._build_type(argument.type)
                pruned[arg_name] = GraphQLArgument(**kwargs)
        return pruned

    def _output_fields(self, type_: GraphQLNamedType) -> Dict[str, GraphQLField]:
        fields = {}
        for field_name in self.visible[type_.name]:
            field = type_.fields[field_name]
            kwargs = field.to_kwargs()
            kwargs["type_"] = self._build_type(field.type)
            kwargs["args"] = self._arguments(field.args)
            fields[field_name] = GraphQLField(**kwargs)
        return fields

    def _input_fields(self, type_: GraphQLInputObjectType) -> Dict[str, GraphQLInputField]:
        fields = {}
        for field_name in self.visible[type_.name]:
            field = type_.fields[field_name]
            kwargs = field.to_kwargs()
            kwargs["type_"] = self._build_type(field.type)
            fields[field_name] = GraphQLInputField(**kwargs)
        return fields

    def _interfaces(self, type_: GraphQLNamedType) -> List[GraphQLInterfaceType]:
        return [self.types[name] for name in self.implemented[type_.name]]

    def _members(self, type_: GraphQLUnionType) -> List[GraphQLObjectType]:
        return [self.types[member.name] for member in type_.types if member.name in self.allowed]

    def _rebuild(self, type_: GraphQLNamedType) -> GraphQLNamedType:
        kwargs = type_.to_kwargs()
        if is_object_type(type_):
            kwargs["fields"] = lambda: self._output_fields(type_)
            kwargs["interfaces"] = lambda: self._interfaces(type_)
            # extensions, Ariadne reference resolvers included, travel with to_kwargs
            return GraphQLObjectType(**kwargs)
        if is_interface_type(type_):
            kwargs["fields"] = lambda: self._output_fields(type_)
            kwargs["interfaces"] = lambda: self._interfaces(type_)
            return GraphQLInterfaceType(**kwargs)
        if is_input_object_type(type_):
            kwargs["fields"] = lambda: self._input_fields(type_)
            return GraphQLInputObjectType(**kwargs)
        if is_union_type(type_):
            kwargs["types"] = lambda: self._members(type_)
            return GraphQLUnionType(**kwargs)
        # scalars and enums are shared with the source schema
        return type_

    def _directives(self) -> List[GraphQLDirective]:
        directives = []
        for directive in self.schema.directives:
            named_types = [get_named_type(argument.type) for argument in directive.args.values()]
            if all(named.name in self.allowed and not is_input_object_type(named) for named in named_types):
                directives.append(directive)
                continue
            kwargs = directive.to_kwargs()
            kwargs["args"] = self._arguments(directive.args)
            directives.append(GraphQLDirective(**kwargs))
        return directives

    def _root(self, root: Optional[GraphQLObjectType]) -> Optional[GraphQLNamedType]:
        return self.types.get(root.name) if root is not None else None

    def prune(self) -> GraphQLSchema:
        self.resolve_allowed()
        for name, type_ in self.schema.type_map.items():
            if name in self.allowed:
                self.types[name] = self._rebuild(type_)

        kwargs = self.schema.to_kwargs()
        kwargs.update(
            query=self._root(self.schema.query_type),
            mutation=self._root(self.schema.mutation_type),
            subscription=self._root(self.schema.subscription_type),
            types=list(self.types.values()),
            directives=self._directives(),
        )
        return GraphQLSchema(**kwargs)


def prune_schema(schema: GraphQLSchema, filter_map: FilterMap) -> GraphQLSchema:
    return SchemaPruner(schema, filter_map).prune()
