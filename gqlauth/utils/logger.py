# gqlauth/utils/logger.py
import json
from datetime import datetime, timezone
from typing import Any, Optional

AUTH_STREAM = "auth"

# Basic structured logging function
def write_log(entry: dict, stream: str = "default"):
    entry = dict(entry)
    entry.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    entry.setdefault("stream", stream)
    print(json.dumps(entry, ensure_ascii=False, default=str))

def log_denial(name: str, policy: Any, replaced: bool = False, path: Optional[list] = None):
    """
    Audit a failed policy check.
    - name: field (or type, for reference resolvers) that was denied
    - policy: the policy value; directive nodes are logged by directive name
    - replaced: True when replacement mode substituted a value instead of raising
    """
    write_log({
        "event": "policy_replaced" if replaced else "policy_denied",
        "name": name,
        "policy": _describe_policy(policy),
        "path": path,
    }, stream=AUTH_STREAM)

def _describe_policy(policy: Any) -> Any:
    directive_name = getattr(getattr(policy, "name", None), "value", None)
    if directive_name:
        return f"@{directive_name}"
    if isinstance(policy, (dict, list, str, int, float, bool)) or policy is None:
        return policy
    return repr(policy)
