from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from salon_scheduler.core.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_actor_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[UUID]:
    """
    The acting user's id from an optional bearer token.

    No token means an anonymous caller; a token that is present but
    invalid is rejected.
    """
    if credentials is None:
        return None
    subject = decode_token(credentials.credentials)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return UUID(subject)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token subject is not a user id",
            headers={"WWW-Authenticate": "Bearer"},
        )
