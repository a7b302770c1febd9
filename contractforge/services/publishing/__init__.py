"""Registry publishing."""

from .service import (
    CredentialResolver,
    HttpRegistryClient,
    Publisher,
    RegistryClient,
    RegistryCredentials,
    render_pom,
)

__all__ = [
    "CredentialResolver",
    "HttpRegistryClient",
    "Publisher",
    "RegistryClient",
    "RegistryCredentials",
    "render_pom",
]
