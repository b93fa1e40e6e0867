"""Materialize lazy artifacts by running their steps in dependency order."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from protoscan.graph.steps import LazyPath, RunStep
from protoscan.graph.targets import SourceUnit

LOGGER = logging.getLogger(__name__)

Materializable = RunStep | LazyPath | SourceUnit


def _root_steps(root: Materializable) -> list[RunStep]:
    if isinstance(root, RunStep):
        return [root]
    if isinstance(root, LazyPath):
        return [root.step]
    return root.dependencies


def collect_steps(roots: Iterable[Materializable]) -> list[RunStep]:
    """Return every step reachable from the roots, dependencies first."""

    ordered: list[RunStep] = []
    seen: set[int] = set()

    def visit(step: RunStep) -> None:
        if id(step) in seen:
            return
        seen.add(id(step))
        for dep in step.dependencies:
            visit(dep)
        ordered.append(step)

    for root in roots:
        for step in _root_steps(root):
            visit(step)
    return ordered


def materialize(
    roots: Iterable[Materializable],
    *,
    jobs: int = 1,
    logger: logging.Logger | None = None,
) -> list[RunStep]:
    """Run every step needed by the roots, independent steps in parallel.

    The first failure stops scheduling; steps already running are awaited and
    the failure is re-raised.
    """

    effective_logger = logger or LOGGER
    steps = collect_steps(roots)
    waiting = {id(step): {id(dep) for dep in step.dependencies if not dep.is_made} for step in steps}
    by_id = {id(step): step for step in steps}
    done: set[int] = {id(step) for step in steps if step.is_made}
    effective_logger.info("materialize.start steps=%s already_made=%s jobs=%s", len(steps), len(done), jobs)

    with ThreadPoolExecutor(max_workers=max(1, jobs)) as pool:
        running: dict[Future[None], int] = {}

        def submit_ready() -> None:
            for step_id, deps in waiting.items():
                if step_id in done or step_id in running.values():
                    continue
                if deps <= done:
                    running[pool.submit(by_id[step_id].make)] = step_id

        submit_ready()
        while running:
            finished, _ = wait(list(running), return_when=FIRST_COMPLETED)
            failure: BaseException | None = None
            for future in finished:
                step_id = running.pop(future)
                exc = future.exception()
                if exc is not None:
                    failure = failure or exc
                    continue
                done.add(step_id)
            if failure is not None:
                for future in running:
                    future.cancel()
                wait(list(running))
                effective_logger.error("materialize.failed error=%s", failure)
                raise failure
            submit_ready()

    effective_logger.info("materialize.done steps=%s", len(steps))
    return steps
