"""Short-lived service claims presented to the internal catalog endpoints."""

import time
from typing import Optional

from jose import jwt

from app.config import SERVICE_TOKEN_TTL_SECONDS
from app.models.collection import Role

ALGORITHM = "HS256"
SERVICE_CLAIM_TYPE = "service_claim"
ORGANIZATION_ROLE_TYPE = "organization_role"
DATASET_ROLE_TYPE = "dataset_role"


def service_role(role_type: str, int_id: int, role: Role, node_id: Optional[str] = None) -> dict:
    return {
        "type": role_type,
        "id": str(int_id),
        "node_id": node_id or "",
        "role": role.value,
    }


def create_service_token(
    secret: str,
    organization_id: int,
    collection_id: int,
    collection_node_id: str,
    collection_role: Role,
    ttl_seconds: int = SERVICE_TOKEN_TTL_SECONDS,
) -> str:
    """Create a signed service claim scoped to one organization and one collection.

    The organization role is always owner; the collection (dataset) role is the
    calling user's role on the collection.
    """
    now_timestamp = int(time.time())
    claims = {
        "type": SERVICE_CLAIM_TYPE,
        "roles": [
            service_role(ORGANIZATION_ROLE_TYPE, organization_id, Role.OWNER),
            service_role(DATASET_ROLE_TYPE, collection_id, collection_role, collection_node_id),
        ],
        "iat": now_timestamp,
        "exp": now_timestamp + ttl_seconds,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_service_token(token: str, secret: str) -> dict:
    """Decode and verify a token produced by create_service_token."""
    return jwt.decode(token, secret, algorithms=[ALGORITHM])
