"""
Venue integrations.
- VenueClient: what the burst engine needs from a venue.
- SignedRestClient: HMAC-signed REST client over a pooled httpx.AsyncClient.
"""

from .base import OrderAck, VenueClient
from .rest import SignedRestClient
from .signing import create_signature, sign_params, signed_query

__all__ = [
    "OrderAck",
    "VenueClient",
    "SignedRestClient",
    "create_signature",
    "sign_params",
    "signed_query",
]
