"""API token helpers.

Token storage and expiry live outside this package; the client only asks a
provider for the current token and reports when the API rejects it.
"""

import os
from typing import Dict, Optional


def get_api_token() -> Optional[str]:
    """Read the CMS API token from the environment, if configured."""
    return os.environ.get("CMS_API_TOKEN") or None


def auth_headers(token: Optional[str]) -> Dict[str, str]:
    """Authorization header for a bearer token; empty when there is none."""
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}
