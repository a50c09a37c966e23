from pydantic import BaseModel


class UserClaim(BaseModel):
    """Identity of the calling user, taken from the access token."""

    id: int
    node_id: str
