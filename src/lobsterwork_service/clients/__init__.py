"""HTTP clients for external services."""

from lobsterwork_service.clients.identity_client import IdentityClient

__all__ = ["IdentityClient"]
