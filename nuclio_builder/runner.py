"""Command runner: executes shell command lines for external side effects.

Used for version-control operations (``git clone`` / ``git checkout``).
Returns combined stdout+stderr; raises ``CommandError`` on non-zero exit,
on a missing executable and on deadline expiry.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import CommandError
from nuclio_builder.logging import get_logger


class CommandRunner:
    def __init__(self, deadline: Deadline | None = None) -> None:
        self.deadline = deadline or Deadline()
        self.log = get_logger().getChild("runner")

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str:
        command = shlex.join(args)
        self.deadline.check(f"running {command}")

        # overrides are layered over the inherited environment
        full_env = None
        if env is not None:
            full_env = os.environ.copy()
            full_env.update(env)

        self.log.debug("Executing", extra={"ctx": {"cmd": command, "cwd": cwd}})
        try:
            proc = subprocess.run(
                list(args),
                cwd=cwd,
                env=full_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.deadline.remaining(),
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            output = exc.output if isinstance(exc.output, str) else ""
            raise CommandError(command, None, output) from exc
        except OSError as exc:
            raise CommandError(command, None, str(exc)) from exc

        if proc.returncode != 0:
            self.log.debug(
                "Command failed",
                extra={"ctx": {"cmd": command, "code": proc.returncode, "output": proc.stdout}},
            )
            raise CommandError(command, proc.returncode, proc.stdout)
        return proc.stdout
