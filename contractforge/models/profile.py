"""
Generation profiles.

A profile is everything a generation target needs besides the contract: the
generator identity, the package names and the generator options. The two kinds
are a tagged variant consumed by a single generic GenerationTarget.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import Config


class PackageNames(BaseModel):
    """Root, api, model and invoker namespaces for generated code."""

    model_config = ConfigDict(frozen=True)

    root: str
    api: str
    model: str
    invoker: str

    @classmethod
    def under(cls, root: str, api: str | None = None) -> PackageNames:
        """Derive the api/model/invoker packages below an api package."""
        api = api or root
        return cls(root=root, api=api, model=f"{api}.model", invoker=f"{api}.invoker")

    def all(self) -> tuple[str, ...]:
        return (self.root, self.api, self.model, self.invoker)


class _ProfileBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Target name, also the binding name")
    generator: str = Field(description="Generator identity passed to the engine")
    packages: PackageNames
    options: dict[str, str] = Field(default_factory=dict)
    source_subdir: Path = Field(description="Source root inside the generated output")
    archive_base_name: str = Field(description="Static archive base name")
    description: str = ""

    def fingerprint(self) -> str:
        """Stable hash of everything that influences generated output."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ServerProfile(_ProfileBase):
    """Interface-only server stubs."""

    kind: Literal["server"] = "server"


class ClientProfile(_ProfileBase):
    """Full HTTP client SDK."""

    kind: Literal["client"] = "client"


GenerationProfile = Annotated[Union[ServerProfile, ClientProfile], Field(discriminator="kind")]


def server_profile(config: Config) -> ServerProfile:
    base = config.project.base_package
    return ServerProfile(
        name="server",
        generator="spring",
        packages=PackageNames(
            root=base,
            api=f"{base}.api",
            model=f"{base}.api.model",
            invoker=f"{base}.api.invoker",
        ),
        options={
            "interfaceOnly": "true",
            "skipDefaultInterface": "true",
            "dateLibrary": "java8",
            "useSpringBoot3": "true",
            "useTags": "true",
            "hideGenerationTimestamp": "true",
        },
        source_subdir=Path("src/main/java"),
        archive_base_name=f"{config.project.product_name}-api-server",
        description="Generates Java Spring server code from OpenAPI spec",
    )


def client_profile(config: Config) -> ClientProfile:
    api = f"{config.project.base_package}.api.client"
    return ClientProfile(
        name="client",
        generator="kotlin",
        packages=PackageNames.under(api),
        options={
            "library": "jvm-retrofit2",
            "dateLibrary": "java8",
            "serializationLibrary": "kotlinx_serialization",
            "useCoroutines": "true",
            "enumPropertyNaming": "UPPERCASE",
            "serializableModel": "true",
            "generateTests": "false",
        },
        source_subdir=Path("src/main/kotlin"),
        archive_base_name=f"{config.project.product_name}-api-client",
        description="Generates Kotlin client code from OpenAPI spec",
    )


def default_profiles(config: Config) -> list[ServerProfile | ClientProfile]:
    """Server first, then client; order only affects reporting."""
    return [server_profile(config), client_profile(config)]
