"""
Task graph and scheduler.

Every pipeline step is a node with declared dependencies, inputs and outputs.
The scheduler starts each node as soon as all of its dependencies have
succeeded, so independent branches run concurrently while each branch keeps its
strict internal order. A node whose dependency did not succeed is skipped and
names the node that blocked it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.exceptions import GraphError
from ..core.logging import get_logger
from ..core.types import StageResult

logger = get_logger(__name__)

NodeAction = Callable[[Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class TaskNode:
    """One step of the build.

    outputs are the paths the node owns and must not share with another node.
    produces, when set, maps the node's value to the files it actually wrote;
    otherwise the declared outputs are recorded as its artifacts.
    """

    name: str
    action: NodeAction
    depends_on: tuple[str, ...] = ()
    inputs: tuple[Path, ...] = ()
    outputs: tuple[Path, ...] = ()
    produces: Callable[[Any], Iterable[Path]] | None = None
    group: str = "build"
    description: str = ""


@dataclass
class GraphRun:
    """Values and stage results of one graph execution."""

    values: dict[str, Any] = field(default_factory=dict)
    stages: dict[str, StageResult] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(stage.status.succeeded for stage in self.stages.values())


def _overlaps(a: Path, b: Path) -> bool:
    return a == b or a in b.parents or b in a.parents


class TaskGraph:
    """A directed acyclic graph of TaskNodes."""

    def __init__(self, nodes: Iterable[TaskNode]) -> None:
        self.nodes: dict[str, TaskNode] = {}
        for node in nodes:
            if node.name in self.nodes:
                raise GraphError(message=f"Duplicate task name: {node.name}", node=node.name)
            self.nodes[node.name] = node
        self._validate()
        self._order = self._toposort()

    def _validate(self) -> None:
        for node in self.nodes.values():
            for dep in node.depends_on:
                if dep not in self.nodes:
                    raise GraphError(
                        message=f"Task '{node.name}' depends on unknown task '{dep}'",
                        node=node.name,
                    )

        owned: list[tuple[Path, str]] = []
        for node in self.nodes.values():
            for output in node.outputs:
                resolved = output.resolve()
                for other, owner in owned:
                    if _overlaps(resolved, other):
                        raise GraphError(
                            message=f"Tasks '{owner}' and '{node.name}' declare overlapping outputs",
                            node=node.name,
                            context={"outputs": [str(other), str(resolved)]},
                        )
                owned.append((resolved, node.name))

    def _toposort(self) -> list[str]:
        remaining = {name: set(node.depends_on) for name, node in self.nodes.items()}
        order: list[str] = []
        while remaining:
            ready = [name for name, deps in remaining.items() if not deps]
            if not ready:
                raise GraphError(
                    message="Task graph contains a cycle",
                    node=sorted(remaining)[0],
                    context={"tasks": sorted(remaining)},
                )
            for name in ready:
                order.append(name)
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)
        return order

    def order(self) -> list[str]:
        """Deterministic topological order (declaration order within a level)."""
        return list(self._order)

    def subgraph(self, targets: Iterable[str]) -> TaskGraph:
        """The targets plus everything they transitively depend on."""
        keep: set[str] = set()
        stack = list(targets)
        while stack:
            name = stack.pop()
            if name not in self.nodes:
                raise GraphError(message=f"Unknown task: {name}", node=name)
            if name in keep:
                continue
            keep.add(name)
            stack.extend(self.nodes[name].depends_on)
        return TaskGraph(node for name, node in self.nodes.items() if name in keep)

    async def run(self) -> GraphRun:
        """Execute the graph; failures are captured per node, never raised."""
        run = GraphRun(stages={name: StageResult(stage_name=name) for name in self._order})
        tasks: dict[str, asyncio.Task[None]] = {}

        async def execute(node: TaskNode) -> None:
            if node.depends_on:
                await asyncio.gather(*(tasks[dep] for dep in node.depends_on))

            stage = run.stages[node.name]
            for dep in node.depends_on:
                if not run.stages[dep].status.succeeded:
                    blocker = run.stages[dep].blocked_by or dep
                    stage.mark_skipped(blocker)
                    logger.info("Task skipped", task=node.name, blocked_by=blocker)
                    return

            stage.mark_running()
            try:
                value = await node.action(run.values)
            except asyncio.CancelledError:
                stage.mark_failed(RuntimeError("cancelled"))
                raise
            except Exception as e:
                stage.mark_failed(e)
                run.errors[node.name] = e
                logger.error("Task failed", task=node.name, error=str(e))
                return

            run.values[node.name] = value
            stage.mark_completed(
                artifacts=list(node.produces(value)) if node.produces else list(node.outputs),
                up_to_date=bool(getattr(value, "up_to_date", False)),
            )
            logger.info("Task finished", task=node.name, status=stage.status.value)

        for name in self._order:
            tasks[name] = asyncio.create_task(execute(self.nodes[name]), name=name)

        try:
            await asyncio.gather(*tasks.values())
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        return run

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)


__all__ = ["GraphRun", "NodeAction", "TaskGraph", "TaskNode"]
