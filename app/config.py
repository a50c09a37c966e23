from functools import lru_cache
import os

from dotenv import load_dotenv

load_dotenv()

# Catalog limits
MAX_BANNERS_PER_COLLECTION = 4
MAX_COLLECTION_NAME_LENGTH = 255
MAX_COLLECTION_DESCRIPTION_LENGTH = 255

# Service claims handed to the catalog are short-lived
SERVICE_TOKEN_TTL_SECONDS = 5 * 60


@lru_cache()
def get_discover_service_url() -> str:
    """Get the base URL of the Discover catalog service."""
    url = os.getenv("DISCOVER_SERVICE_URL")
    if not url:
        raise ValueError("DISCOVER_SERVICE_URL must be set")

    # Deployed settings only carry the host
    if not url.startswith("http"):
        url = f"https://{url}"

    return url.rstrip("/")


@lru_cache()
def get_doi_prefix() -> str:
    """Get the DOI prefix that identifies catalog-native (Pennsieve) DOIs."""
    prefix = os.getenv("PENNSIEVE_DOI_PREFIX")
    if not prefix:
        raise ValueError("PENNSIEVE_DOI_PREFIX must be set")
    return prefix.strip().rstrip("/")


@lru_cache()
def get_collections_namespace_id() -> int:
    """Get the organization id under which collections are published."""
    value = os.getenv("COLLECTIONS_NAMESPACE_ID")
    if not value:
        raise ValueError("COLLECTIONS_NAMESPACE_ID must be set")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid COLLECTIONS_NAMESPACE_ID: {value}. Must be an integer")
