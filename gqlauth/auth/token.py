# gqlauth/auth/token.py
"""
Bearer token helpers for the bundled auth context:
- decode_token verifies signature and expiry, optionally the typ claim
- sign_token issues a token carrying the caller's role
"""
from __future__ import annotations
import time
import uuid
from typing import Dict, Any, Optional

from jose import jwt, JWTError, ExpiredSignatureError

from gqlauth.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from gqlauth.utils.logger import write_log

def _now() -> int:
    return int(time.time())

def decode_token(token: str, expected_typ: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        write_log({"event": "token_expired", "token_snippet": token[:48]})
        return None
    except JWTError as e:
        write_log({"event": "token_decode_failed", "error": str(e), "token_snippet": token[:48]})
        return None

    # enforce typ
    if expected_typ and payload.get("typ") != expected_typ:
        write_log({"event": "token_typ_mismatch", "expected": expected_typ, "actual": payload.get("typ"), "jti": payload.get("jti")})
        return None
    return payload

def sign_token(subject: str, role: Optional[str] = None, ttl: Optional[int] = None, typ: str = "access") -> str:
    now = _now()
    claims = {
        "sub": subject,
        "jti": str(uuid.uuid4()),
        "typ": typ,
        "role": role,
        "iat": now,
        "exp": now + (ttl if ttl is not None else ACCESS_TOKEN_EXPIRE_MINUTES * 60),
    }
    token = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    write_log({"event": "token_issued", "typ": typ, "role": role, "jti": claims["jti"]})
    return token
