from gqlauth.auth.policy import directive_arguments
from gqlauth.auth.token import decode_token
from gqlauth.utils.logger import write_log

USER_HEADER = "x-user"

# Roles granted to each caller identity
role_grants = {
    "user": {"USER"},
    "admin": {"USER", "ADMIN"},
}

DEFAULT_REQUIRED_ROLE = "ADMIN"

def auth_context(context: dict) -> dict:
    """
    Identity of the caller: the role claim of a valid bearer token, otherwise
    the x-user header.
    """
    payload = decode_token(context.get("token")) if context.get("token") else None
    if payload:
        return {"identity": payload.get("role"), "sub": payload.get("sub")}

    request = context.get("request")
    identity = request.headers.get(USER_HEADER) if request is not None else None
    return {"identity": identity, "sub": None}

def require_role(auth: dict, required_role: str) -> bool:
    identity = auth.get("identity")
    if required_role not in role_grants.get(identity, set()):
        write_log({
            "event": "access_denied",
            "reason": f"role '{identity}' lacks {required_role}",
            "user_id": auth.get("sub"),
        })
        return False
    return True

async def apply_policy(policy, parent, args, context, info) -> bool:
    required_role = directive_arguments(policy).get("requires") or DEFAULT_REQUIRED_ROLE
    return require_role(context.get("auth") or {}, required_role)
