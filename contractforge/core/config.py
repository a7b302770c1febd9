"""
Configuration management for contractforge.

Provides centralized, type-safe configuration with environment variable overrides
and defaults for the Velaris API build (one contract, a Spring server
interface and a Kotlin client, published to GitHub Packages).
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


class ProjectConfig(BaseModel):
    """Identity and layout of the project being built."""

    product_name: str = Field(default="velaris", description="Product name used in archive names")
    group_id: str = Field(default="com.velaris.api", description="Shared publish groupId")
    base_package: str = Field(default="com.velaris", description="Root namespace for generated code")
    project_dir: Path = Field(default=Path("."), description="Project root (also the git work tree)")
    contract_path: Path | None = Field(
        default=None, description="Contract file; defaults to api/<product>-api.yaml"
    )
    build_dir: Path = Field(default=Path("build"), description="Build directory, relative to project_dir")

    def resolve(self, path: Path) -> Path:
        """Resolve a path relative to the project directory."""
        return path if path.is_absolute() else (self.project_dir / path)

    @property
    def contract_file(self) -> Path:
        return self.resolve(self.contract_path or Path("api") / f"{self.product_name}-api.yaml")

    @property
    def build_path(self) -> Path:
        return self.resolve(self.build_dir)

    @property
    def generated_path(self) -> Path:
        return self.build_path / "generated"

    @property
    def classes_path(self) -> Path:
        return self.build_path / "classes"

    @property
    def dist_path(self) -> Path:
        return self.build_path / "libs"

    @property
    def state_path(self) -> Path:
        return self.build_path / ".contractforge"


class VersioningConfig(BaseModel):
    """Version derivation from repository tags."""

    tag_prefix: str = Field(default="v", description="Prefix stripped from release tags")
    base_version: str = Field(default="0.0.1", description="Version used when no tag exists")
    git_executable: str = Field(default="git")


class GeneratorConfig(BaseModel):
    """External OpenAPI generator configuration."""

    executable: str = Field(default="openapi-generator-cli", description="Generator CLI executable")
    timeout_seconds: int = Field(default=300, ge=10, description="Generator invocation timeout")


class ToolchainConfig(BaseModel):
    """Compiler toolchain configuration.

    Command templates may reference {source_root}, {output_dir}, {dependencies}
    and {compiler_args}. Leaving a template empty stages sources unchanged.
    """

    server_command: str = Field(default="", description="Compile command for the server binding")
    client_command: str = Field(default="", description="Compile command for the client binding")
    jvm_target: str = Field(default="21")
    client_compiler_args: list[str] = Field(
        default_factory=lambda: ["-opt-in=kotlinx.serialization.ExperimentalSerializationApi"]
    )
    timeout_seconds: int = Field(default=600, ge=10)


class RegistryConfig(BaseModel):
    """Artifact registry configuration."""

    name: str = Field(default="GitHubPackages")
    url: str = Field(default="https://maven.pkg.github.com/Velaris-app/velaris-api")
    username_env: str = Field(default="GITHUB_ACTOR")
    password_env: str = Field(default="GITHUB_TOKEN")
    username_property: str = Field(default="gpr.user")
    password_property: str = Field(default="gpr.token")
    property_files: list[Path] = Field(
        default_factory=lambda: [
            Path("gradle.properties"),
            Path("~/.gradle/gradle.properties").expanduser(),
        ],
        description="Local property stores; later files override earlier ones",
    )
    timeout_seconds: int = Field(default=120, ge=5, description="Per-request upload timeout")
    max_attempts: int = Field(default=3, ge=1, description="Transport retry attempts")


class PipelineConfig(BaseModel):
    """Pipeline execution configuration."""

    use_prefect: bool = Field(default=True, description="Run nodes as Prefect tasks inside a flow")
    force: bool = Field(default=False, description="Ignore up-to-date stamps and regenerate")


class Config(BaseModel):
    """Root configuration for contractforge."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    versioning: VersioningConfig = Field(default_factory=VersioningConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        env = os.environ
        contract = env.get("CF_CONTRACT_PATH")
        return cls(
            log_level=env.get("CF_LOG_LEVEL", "INFO"),  # type: ignore
            project=ProjectConfig(
                product_name=env.get("CF_PRODUCT_NAME", "velaris"),
                group_id=env.get("CF_GROUP_ID", "com.velaris.api"),
                base_package=env.get("CF_BASE_PACKAGE", "com.velaris"),
                project_dir=Path(env.get("CF_PROJECT_DIR", ".")),
                contract_path=Path(contract) if contract else None,
                build_dir=Path(env.get("CF_BUILD_DIR", "build")),
            ),
            versioning=VersioningConfig(
                tag_prefix=env.get("CF_TAG_PREFIX", "v"),
                base_version=env.get("CF_BASE_VERSION", "0.0.1"),
            ),
            generator=GeneratorConfig(
                executable=env.get("CF_GENERATOR", "openapi-generator-cli"),
                timeout_seconds=int(env.get("CF_GENERATOR_TIMEOUT", "300")),
            ),
            toolchain=ToolchainConfig(
                server_command=env.get("CF_SERVER_COMPILE_COMMAND", ""),
                client_command=env.get("CF_CLIENT_COMPILE_COMMAND", ""),
                timeout_seconds=int(env.get("CF_COMPILE_TIMEOUT", "600")),
            ),
            registry=RegistryConfig(
                name=env.get("CF_REGISTRY_NAME", "GitHubPackages"),
                url=env.get("CF_REGISTRY_URL", "https://maven.pkg.github.com/Velaris-app/velaris-api"),
                timeout_seconds=int(env.get("CF_REGISTRY_TIMEOUT", "120")),
            ),
            pipeline=PipelineConfig(
                use_prefect=env.get("CF_USE_PREFECT", "true").lower() == "true",
                force=env.get("CF_FORCE", "false").lower() == "true",
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
