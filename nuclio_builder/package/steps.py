"""Ordered, labeled build steps and the runner that executes them."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import BuildStepError, BuildTimeoutError


@dataclass(frozen=True)
class BuildStep:
    label: str
    operation: Callable[[], None]


def run_steps(steps: Sequence[BuildStep], log: logging.Logger, deadline: Deadline | None = None) -> None:
    """Run *steps* in order; the first failure stops the plan.

    Failures are re-raised as ``BuildStepError`` labeled with the step.
    Deadline expiry propagates as is.
    """
    deadline = deadline or Deadline()
    for step in steps:
        deadline.check(step.label)
        log.info(step.label)
        try:
            step.operation()
        except BuildTimeoutError:
            raise
        except Exception as exc:
            log.error("Build step failed", extra={"ctx": {"step": step.label, "error": exc}})
            raise BuildStepError(step.label, str(exc), getattr(exc, "log_tail", None)) from exc
