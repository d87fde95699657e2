"""Abstract base class for providers, and the step model they run."""

from __future__ import annotations

import logging
import time
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from auth0_ingestion.config import IngestionConfig
from auth0_ingestion.db import Database
from auth0_ingestion.job_state import JobState

logger = logging.getLogger("ingestion.provider")


@dataclass(frozen=True)
class IntegrationStep:
    id: str
    name: str
    handler: Callable[[JobState], int]
    entity_types: tuple[str, ...] = ()
    relationship_types: tuple[str, ...] = ()
    depends_on: tuple[str, ...] = field(default_factory=tuple)


def order_steps(steps: list[IntegrationStep]) -> list[IntegrationStep]:
    """Dependencies first, otherwise declaration order. Raises on unknown or cyclic deps."""
    by_id = {s.id: s for s in steps}
    ordered: list[IntegrationStep] = []
    done: set[str] = set()
    visiting: set[str] = set()

    def visit(step: IntegrationStep) -> None:
        if step.id in done:
            return
        if step.id in visiting:
            raise ValueError(f"Step dependency cycle at {step.id}")
        visiting.add(step.id)
        for dep in step.depends_on:
            if dep not in by_id:
                raise ValueError(f"Step {step.id} depends on unknown step {dep}")
            visit(by_id[dep])
        visiting.discard(step.id)
        done.add(step.id)
        ordered.append(step)

    for s in steps:
        visit(s)
    return ordered


class BaseProvider(ABC):
    """Each provider declares PROVIDER_NAME and its steps."""

    PROVIDER_NAME: str = ""

    def __init__(self, config: IngestionConfig, db: Optional[Database] = None) -> None:
        self.config = config
        self.db = db
        self.instance_id = config.instance_id

    @abstractmethod
    def steps(self) -> list[IntegrationStep]:
        """Steps of one run, in any order; depends_on decides execution order."""

    def new_job_state(self) -> JobState:
        return JobState(self.instance_id, db=self.db, batch_size=self.config.batch_size)

    def sync(self, job_state: Optional[JobState] = None) -> dict[str, int]:
        """Run every step, then persist.

        Returns records collected per step id, plus the persisted row counts
        under "graph_entities" and "graph_relationships".
        """
        job_state = job_state or self.new_job_state()
        results: dict[str, int] = {}
        for step in order_steps(self.steps()):
            started = time.monotonic()
            logger.info("Starting step %s", step.name, extra={"step": step.id})
            results[step.id] = step.handler(job_state)
            logger.info(
                "Finished step %s",
                step.name,
                extra={
                    "step": step.id,
                    "records": results[step.id],
                    "duration_s": round(time.monotonic() - started, 3),
                },
            )
        results.update(job_state.flush())
        return results

    def sync_with_tracking(self) -> dict[str, int]:
        """Wrap sync() with ingestion_runs tracking. Untracked when there is no database."""
        if self.db is None:
            return self.sync()

        run_id = self.db.record_run_start(
            instance_id=self.instance_id,
            provider=self.PROVIDER_NAME,
        )
        try:
            results = self.sync()
            self.db.record_run_end(
                run_id=run_id,
                instance_id=self.instance_id,
                status="SUCCESS",
                entities_upserted=results.get("graph_entities", 0),
                relationships_upserted=results.get("graph_relationships", 0),
            )
            logger.info(
                "Sync complete",
                extra={
                    "provider": self.PROVIDER_NAME,
                    "records": results.get("graph_entities", 0),
                    "run_id": run_id,
                },
            )
            return results
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                instance_id=self.instance_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error(
                "Sync failed: %s",
                exc,
                extra={"provider": self.PROVIDER_NAME, "run_id": run_id},
            )
            raise
