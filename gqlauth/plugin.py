# gqlauth/plugin.py
"""
register_auth wires one policy set into a GraphQLService:

    register_auth(
        service,
        auth_directive="auth",
        auth_context=lambda context: {"identity": ...},
        apply_policy=apply_policy,
        filter_schema=True,
    )

Several registrations may share a service (for example one per directive);
their checks run in registration order and their auth contexts are merged.
"""
from __future__ import annotations

from typing import Any

from graphql import DocumentNode, GraphQLSchema

from gqlauth.auth.guard import register_guards
from gqlauth.auth.policy import PolicyMap, extract_policy, normalize_external_policy, policy_count
from gqlauth.config import AuthOptions, validate_options
from gqlauth.filtering.introspection import install_filter, update_policy
from gqlauth.utils.awaitable import maybe_await
from gqlauth.utils.logger import AUTH_STREAM, write_log

AUTH_CONTEXT_KEY = "auth"


class AuthRegistration:
    def __init__(self, service: Any, options: AuthOptions):
        self.service = service
        self.options = options
        self.policy: PolicyMap = {}

    def get_policy(self, schema: GraphQLSchema) -> PolicyMap:
        if self.options.external:
            return normalize_external_policy(self.options.policy)
        return extract_policy(schema, self.options.auth_directive)

    def install(self):
        schema = self.service.schema
        self.policy = self.get_policy(schema)
        guarded = register_guards(schema, self.policy, self.options, owner=self)

        self.service.add_hook("replace_schema", self.on_replace_schema)
        if self.options.auth_context is not None:
            self.service.add_hook("pre_execution", self.auth_context_hook)
        if self.options.filter_schema:
            install_filter(self.service, self, self.policy, self.options.apply_policy)

        write_log({
            "event": "auth_registered",
            "mode": self.options.mode,
            "directive": self.options.auth_directive,
            "policies": policy_count(self.policy),
            "guarded_resolvers": guarded,
            "filter_schema": self.options.filter_schema,
        }, stream=AUTH_STREAM)

    async def on_replace_schema(self, schema: GraphQLSchema):
        policy = self.get_policy(schema)
        guarded = register_guards(schema, policy, self.options, owner=self)
        self.policy = policy
        if self.options.filter_schema:
            update_policy(self.service, self, policy)
        write_log({
            "event": "auth_schema_refreshed",
            "directive": self.options.auth_directive,
            "policies": policy_count(policy),
            "guarded_resolvers": guarded,
        }, stream=AUTH_STREAM)

    async def auth_context_hook(self, schema: GraphQLSchema, document: DocumentNode, context: Any):
        auth = await maybe_await(self.options.auth_context(context))
        if auth is None:
            return None
        # merge with what earlier registrations put there
        merged = dict(context.get(AUTH_CONTEXT_KEY) or {})
        merged.update(auth)
        context[AUTH_CONTEXT_KEY] = merged
        return None


def register_auth(service: Any, **opts: Any) -> AuthRegistration:
    """
    Validate options, guard the service's schema and install the request hooks.
    Raises AuthError (AUTH_ERR_INVALID_OPTS) on invalid options.
    """
    options = validate_options(**opts)
    registration = AuthRegistration(service, options)
    registration.install()
    return registration
