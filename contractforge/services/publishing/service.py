"""
Publisher.

Uploads a packaged archive to a Maven-layout registry under its publish
coordinate. Credentials come from the environment first and a local property
store second. A publication is recorded only once every one of its files has been
uploaded, so an aborted upload never shows up as published.
"""

from __future__ import annotations

import hashlib
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType

import httpx
from dotenv import dotenv_values
from pydantic import BaseModel, SecretStr
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ...core.exceptions import CredentialsMissingError, PublishTransportError
from ...core.logging import get_logger
from ...models.artifacts import PackagedArtifact, PublicationRecord, PublishCoordinate
from ...storage import StateStore

logger = get_logger(__name__)


class RegistryCredentials(BaseModel):
    """Username/password pair for the registry."""

    username: str
    password: SecretStr
    source: str = ""


class CredentialResolver:
    """Resolves credentials from an environment pair, then a property pair."""

    def __init__(
        self,
        username_env: str = "GITHUB_ACTOR",
        password_env: str = "GITHUB_TOKEN",
        username_property: str = "gpr.user",
        password_property: str = "gpr.token",
        property_files: list[Path] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.username_env = username_env
        self.password_env = password_env
        self.username_property = username_property
        self.password_property = password_property
        self.property_files = property_files or []
        self.environ = environ if environ is not None else os.environ

    def _properties(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for path in self.property_files:
            if path.is_file():
                merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        return merged

    def resolve(self) -> RegistryCredentials:
        """Return credentials or raise CredentialsMissingError.

        Each value falls back independently, mirroring `env ?: property`.
        """
        props = self._properties()
        username = self.environ.get(self.username_env) or props.get(self.username_property)
        password = self.environ.get(self.password_env) or props.get(self.password_property)

        if not username or not password:
            raise CredentialsMissingError(
                message="No registry credentials available",
                sources_checked=[
                    f"env {self.username_env}/{self.password_env}",
                    f"property {self.username_property}/{self.password_property}",
                ],
            )

        source = "environment" if self.environ.get(self.password_env) else "properties"
        return RegistryCredentials(username=username, password=SecretStr(password), source=source)


def render_pom(coordinate: PublishCoordinate, name: str | None = None) -> str:
    return f'''<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 https://maven.apache.org/xsd/maven-4.0.0.xsd">
  <modelVersion>4.0.0</modelVersion>
  <groupId>{coordinate.group_id}</groupId>
  <artifactId>{coordinate.artifact_id}</artifactId>
  <version>{coordinate.version}</version>
  <packaging>jar</packaging>
  <name>{name or coordinate.artifact_id}</name>
</project>
'''


class RegistryClient(ABC):
    """Transport to the artifact registry."""

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @abstractmethod
    async def upload(self, path: str, data: bytes) -> str:
        """Upload data to a repository-relative path and return its URL.

        Raises:
            PublishTransportError: If the registry is unreachable or rejects the upload.
        """
        ...

    async def close(self) -> None:
        return None


class HttpRegistryClient(RegistryClient):
    """Maven repository over HTTP PUT with basic auth."""

    def __init__(
        self,
        url: str,
        credentials: RegistryCredentials,
        timeout: float = 120,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.max_attempts = max_attempts
        self._client = httpx.AsyncClient(
            auth=(credentials.username, credentials.password.get_secret_value()),
            timeout=timeout,
            transport=transport,
        )

    async def upload(self, path: str, data: bytes) -> str:
        url = f"{self.url}/{path}"
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.put(url, content=data)
        except httpx.TransportError as e:
            raise PublishTransportError(message=f"Registry unreachable: {e}", url=url, cause=e)

        if response.is_error:
            raise PublishTransportError(
                message=f"Registry rejected upload with HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        logger.debug("Uploaded", url=url, bytes=len(data))
        return url

    async def close(self) -> None:
        await self._client.aclose()


class Publisher:
    """Publishes packaged artifacts, each tracked and reported independently."""

    def __init__(
        self,
        registry_name: str,
        registry_url: str,
        resolver: CredentialResolver,
        state: StateStore,
        timeout: float = 120,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry_name = registry_name
        self.registry_url = registry_url
        self.resolver = resolver
        self.state = state
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.transport = transport

    @staticmethod
    def record_key(coordinate: PublishCoordinate) -> str:
        return f"publications/{coordinate.artifact_id}/{coordinate.version}.json"

    def create_client(self, credentials: RegistryCredentials) -> RegistryClient:
        return HttpRegistryClient(
            self.registry_url,
            credentials,
            timeout=self.timeout,
            max_attempts=self.max_attempts,
            transport=self.transport,
        )

    @staticmethod
    def publication_files(artifact: PackagedArtifact, coordinate: PublishCoordinate) -> list[tuple[str, bytes]]:
        """Files of one publication in upload order; the archive goes first."""
        primary = [
            (coordinate.file_name("jar"), artifact.path.read_bytes()),
            (coordinate.file_name("pom"), render_pom(coordinate).encode("utf-8")),
        ]
        files: list[tuple[str, bytes]] = []
        for name, data in primary:
            files.append((name, data))
            files.append((f"{name}.sha1", hashlib.sha1(data).hexdigest().encode("ascii")))
            files.append((f"{name}.md5", hashlib.md5(data).hexdigest().encode("ascii")))
        return files

    async def publish(self, artifact: PackagedArtifact, coordinate: PublishCoordinate) -> PublicationRecord:
        """Upload every file of the publication, then record it.

        Raises:
            CredentialsMissingError: Before any network call, if no credentials resolve.
            PublishTransportError: If any upload fails; nothing is recorded.
        """
        try:
            credentials = self.resolver.resolve()
        except CredentialsMissingError as e:
            e.branch = artifact.binding
            raise

        if not artifact.path.is_file():
            raise PublishTransportError(
                message=f"Archive missing: {artifact.path}",
                branch=artifact.binding,
            )

        files = self.publication_files(artifact, coordinate)
        logger.info(
            "Publishing",
            coordinate=str(coordinate),
            registry=self.registry_name,
            credentials=credentials.source,
            files=len(files),
        )

        uploaded: list[str] = []
        try:
            async with self.create_client(credentials) as client:
                for name, data in files:
                    uploaded.append(await client.upload(f"{coordinate.repository_path}/{name}", data))
        except PublishTransportError as e:
            e.branch = artifact.binding
            logger.error("Publish failed", coordinate=str(coordinate), uploaded=len(uploaded), error=str(e))
            raise

        record = PublicationRecord(
            coordinate=coordinate,
            registry_name=self.registry_name,
            registry_url=self.registry_url,
            uploaded=uploaded,
            artifact_sha256=artifact.sha256,
        )
        await self.state.store_model(self.record_key(coordinate), record)
        logger.info("Published", coordinate=str(coordinate))
        return record
