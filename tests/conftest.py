"""Test configuration for contractforge."""

import tempfile
from pathlib import Path

import httpx
import pytest
import structlog
import yaml

from contractforge.core.config import get_config
from contractforge.core.exceptions import ContractSyntaxError, GenerationError
from contractforge.models.contract import parse_document
from contractforge.models.version import RepositoryHistory, TagRef
from contractforge.services.generation import GenerationRequest, GeneratorEngine
from contractforge.services.versioning import HistoryReader

HEALTH_CONTRACT = """\
openapi: 3.0.3
info:
  title: Velaris API
  version: 1.0.0
paths:
  /health:
    get:
      operationId: getHealth
      tags:
        - health
      responses:
        '200':
          description: Service is healthy
          content:
            application/json:
              schema:
                $ref: '#/components/schemas/Health'
components:
  schemas:
    Health:
      type: object
      properties:
        status:
          type: string
"""


class FakeEngine(GeneratorEngine):
    """Deterministic stand-in for openapi-generator.

    Writes one API type per tag and one model per schema, in the package layout
    the real generators use. Generators listed in fail_for write a partial file
    and then fail.
    """

    name = "fake"

    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.fail_for = set(fail_for)
        self.calls: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> None:
        self.calls.append(request)
        try:
            raw = yaml.safe_load(request.contract_path.read_text(encoding="utf-8"))
            document = parse_document(raw, request.contract_path)
        except (yaml.YAMLError, ContractSyntaxError) as e:
            raise GenerationError(
                message=f"Contract rejected by {request.generator}",
                contract_path=str(request.contract_path),
                output_dir=str(request.output_dir),
                cause=e,
            )

        java = request.generator == "spring"
        ext = "java" if java else "kt"
        root = request.output_dir / ("src/main/java" if java else "src/main/kotlin")
        end = ";" if java else ""
        packages = request.packages

        request.output_dir.mkdir(parents=True, exist_ok=True)
        (request.output_dir / "README.md").write_text(f"# {document.title}\n")

        if request.generator in self.fail_for:
            raise GenerationError(
                message=f"{request.generator} generator crashed",
                contract_path=str(request.contract_path),
                output_dir=str(request.output_dir),
            )

        schemas = sorted(((raw.get("components") or {}).get("schemas") or {}))
        model_dir = root / packages.model.replace(".", "/")
        model_dir.mkdir(parents=True, exist_ok=True)
        for schema in schemas:
            (model_dir / f"{schema}.{ext}").write_text(
                f"package {packages.model}{end}\n\n"
                + (f"public class {schema} {{}}\n" if java else f"data class {schema}(val status: String? = null)\n")
            )

        api_dir = root / packages.api.replace(".", "/")
        api_dir.mkdir(parents=True, exist_ok=True)
        for tag in document.tags or ["default"]:
            type_name = f"{tag.capitalize()}Api"
            imports = "".join(f"import {packages.model}.{s}{end}\n" for s in schemas)
            ops = "".join(f"    // {op.label}\n" for op in document.operations if tag in op.tags)
            keyword = "public interface" if java else "interface"
            (api_dir / f"{type_name}.{ext}").write_text(
                f"package {packages.api}{end}\n\n{imports}\n{keyword} {type_name} {{\n{ops}}}\n"
            )


class FakeHistoryReader(HistoryReader):
    """Returns a fixed repository history."""

    def __init__(self, history: RepositoryHistory | None = None) -> None:
        self.history = history or RepositoryHistory()
        self.reads: list[Path] = []

    async def read(self, repo_dir: Path, prefix: str) -> RepositoryHistory:
        self.reads.append(repo_dir)
        return self.history


class RegistryRecorder:
    """httpx mock registry that records every request."""

    def __init__(self, fail_paths: tuple[str, ...] = (), status_code: int = 201) -> None:
        self.fail_paths = fail_paths
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for fragment in self.fail_paths:
            if fragment in request.url.path:
                raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture(autouse=True)
def reset_globals():
    """Undo process-wide logging and configuration set up by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_config.cache_clear()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def contract_file(temp_dir):
    """Write the GET /health contract at the default location.

    Returns:
        Path: api/velaris-api.yaml inside the project directory.
    """
    path = temp_dir / "api" / "velaris-api.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(HEALTH_CONTRACT)
    return path


@pytest.fixture
def config(temp_dir):
    """Create a configuration rooted in the temporary project directory.

    Property files are cleared so credentials never leak in from the
    developer's home directory, and the local scheduler is used instead of Prefect.

    Returns:
        Config: Configuration for an isolated project.
    """
    from contractforge.core.config import Config

    cfg = Config()
    cfg.project.project_dir = temp_dir
    cfg.registry.url = "https://registry.test/maven"
    cfg.registry.property_files = []
    cfg.registry.max_attempts = 1
    cfg.pipeline.use_prefect = False
    return cfg


@pytest.fixture
def state(temp_dir):
    """Create a state store for testing.

    Returns:
        LocalStateStore: A store rooted below the temporary directory.
    """
    from contractforge.storage import LocalStateStore
    return LocalStateStore(temp_dir / "state")


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def tagged_history():
    """Two commits past v1.4.0 on a clean work tree."""
    return FakeHistoryReader(RepositoryHistory(tags=(TagRef(name="v1.4.0", commits_since=2),)))


@pytest.fixture
def registry():
    return RegistryRecorder()


@pytest.fixture
def credentials_env():
    return {"GITHUB_ACTOR": "ci-bot", "GITHUB_TOKEN": "ghp_test"}
