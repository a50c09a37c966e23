from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from app.auth.schemas import UserClaim
from app.auth.utils import verify_token

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UserClaim:
    """Get the calling user from the JWT token.

    The token carries the user's internal id (``user_id``) and node id (``sub``).
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(credentials.credentials, "access")
    if payload is None:
        raise credentials_exception

    try:
        return UserClaim(id=payload.get("user_id"), node_id=payload.get("sub"))
    except ValidationError:
        raise credentials_exception
