"""FastAPI dependency that turns the bearer token into an Actor."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from auth.security import Actor, decode_token, actor_from_payload

security_scheme = HTTPBearer()


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> Actor:
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    actor = actor_from_payload(payload)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
    return actor
