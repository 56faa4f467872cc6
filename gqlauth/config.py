# gqlauth/config.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from graphql import GraphQLDirective

from gqlauth.errors import invalid_opts
from gqlauth.utils.logger import AUTH_STREAM, write_log

MODE_DIRECTIVE = "directive"
MODE_EXTERNAL = "external"
MODES = (MODE_DIRECTIVE, MODE_EXTERNAL)


@dataclass(frozen=True)
class OutputPolicyErrors:
    # False switches the resolver guard into replacement mode
    enabled: bool = True
    value_override: Union[str, Callable[[Any], Any], None] = None


@dataclass(frozen=True)
class AuthOptions:
    apply_policy: Callable[..., Any]
    auth_directive: Optional[str] = None
    auth_context: Optional[Callable[..., Any]] = None
    mode: str = MODE_DIRECTIVE
    policy: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    filter_schema: bool = False
    output_policy_errors: OutputPolicyErrors = field(default_factory=OutputPolicyErrors)

    @property
    def external(self) -> bool:
        return self.mode == MODE_EXTERNAL


def _fail(detail: str):
    write_log({"event": "auth_config_invalid", "reason": detail}, stream=AUTH_STREAM)
    raise invalid_opts(detail)


def _validate_output_policy_errors(raw: Any) -> OutputPolicyErrors:
    if raw is None:
        return OutputPolicyErrors()
    if isinstance(raw, OutputPolicyErrors):
        return raw
    if not isinstance(raw, Mapping):
        _fail("opts.output_policy_errors must be an object.")
    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        _fail("opts.output_policy_errors.enabled must be a boolean.")
    value_override = raw.get("value_override")
    if value_override is not None and not isinstance(value_override, str) and not callable(value_override):
        _fail("opts.output_policy_errors.value_override must be a string or a function.")
    return OutputPolicyErrors(enabled=enabled, value_override=value_override)


def validate_options(**opts: Any) -> AuthOptions:
    """
    Validate plugin options eagerly; any problem raises AUTH_ERR_INVALID_OPTS
    so that registration (and therefore application start-up) fails.
    """
    # Mandatory
    apply_policy = opts.get("apply_policy")
    if not callable(apply_policy):
        _fail("opts.apply_policy must be a function.")

    # Optional
    mode = opts.get("mode")
    if mode is None:
        mode = MODE_DIRECTIVE
    if not isinstance(mode, str):
        _fail("opts.mode must be a string.")
    if mode not in MODES:
        _fail(f"opts.mode must be one of: {', '.join(MODES)}.")

    auth_context = opts.get("auth_context")
    if auth_context is not None and not callable(auth_context):
        _fail("opts.auth_context must be a function.")

    filter_schema = opts.get("filter_schema", False)
    if not isinstance(filter_schema, bool):
        _fail("opts.filter_schema must be a boolean.")

    output_policy_errors = _validate_output_policy_errors(opts.get("output_policy_errors"))

    auth_directive = opts.get("auth_directive")
    policy: Dict[str, Dict[str, Any]] = {}

    if mode == MODE_EXTERNAL:
        if auth_directive is not None:
            _fail("opts.auth_directive cannot be used when mode is external.")
        if filter_schema:
            _fail("opts.filter_schema cannot be used when mode is external.")
        raw_policy = opts.get("policy")
        if raw_policy is not None:
            if not isinstance(raw_policy, Mapping):
                _fail("opts.policy must be an object.")
            for type_name, type_policy in raw_policy.items():
                # type-level policies live under the reserved key, never directly on the type
                if not isinstance(type_policy, Mapping):
                    _fail(f"opts.policy.{type_name} must be an object.")
            policy = {type_name: dict(type_policy) for type_name, type_policy in raw_policy.items()}
    else:
        if isinstance(auth_directive, GraphQLDirective):
            auth_directive = auth_directive.name
        if not isinstance(auth_directive, str) or not auth_directive:
            _fail("opts.auth_directive must be a string.")

    return AuthOptions(
        apply_policy=apply_policy,
        auth_directive=auth_directive,
        auth_context=auth_context,
        mode=mode,
        policy=policy,
        filter_schema=filter_schema,
        output_policy_errors=output_policy_errors,
    )
