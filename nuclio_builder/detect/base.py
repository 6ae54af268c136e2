"""Handler discovery API.

``discover_handlers`` reports the Go packages found in a function directory and
the functions whose signatures match the event-handler shape.
``complete_handler_info`` uses it to fill in a configuration that leaves the
handler (or the function name) unspecified.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from nuclio_builder.detect.go_ast import parse_dir
from nuclio_builder.detect.signature import is_handler_candidate
from nuclio_builder.errors import DiscoveryError
from nuclio_builder.logging import get_logger
from nuclio_builder.types import FunctionConfig, HandlerCandidate

log = get_logger().getChild("detect")


class HandlerReport(BaseModel):
    """Discovery result.

    Attributes
    ----------
    packages: list[str]
        Package names seen, de-duplicated, in first-seen order.
    candidates: list[HandlerCandidate]
        Every matching function; duplicates across files are kept.
    """

    packages: list[str] = []
    candidates: list[HandlerCandidate] = []

    @property
    def handlers(self) -> list[str]:
        return [c.name for c in self.candidates]


def discover_handlers(source_dir: Path | str, require_error_result: bool = False) -> HandlerReport:
    source = Path(source_dir)
    report = HandlerReport()
    for parsed in parse_dir(source):
        if parsed.package not in report.packages:
            report.packages.append(parsed.package)
        for sig in parsed.functions:
            if is_handler_candidate(sig, require_error_result=require_error_result):
                report.candidates.append(HandlerCandidate(package=parsed.package, name=sig.name))

    log.debug(
        "Parsed event handlers",
        extra={"ctx": {"path": source, "packages": report.packages, "handlers": report.handlers}},
    )
    return report


def _adjective(n: int) -> str:
    return "no" if n == 0 else "too many"


def complete_handler_info(config: FunctionConfig, function_path: Path | str) -> tuple[FunctionConfig, str | None]:
    """Fill an empty handler/name from discovery.

    Returns the (possibly updated) config and the discovered package name, or
    ``None`` when discovery was not needed.
    """
    if config.handler and config.name:
        return config, None

    report = discover_handlers(function_path)
    if len(report.handlers) != 1:
        raise DiscoveryError(
            f"{_adjective(len(report.handlers))} handlers found in {function_path}"
        )
    if len(report.packages) != 1:
        raise DiscoveryError(
            f"{_adjective(len(report.packages))} packages found in {function_path}"
        )

    updates: dict[str, str] = {}
    if not config.handler:
        updates["handler"] = report.handlers[0]
        log.debug("Selected handler", extra={"ctx": {"handler": updates["handler"]}})
    if not config.name:
        updates["name"] = report.packages[0]
        log.debug("Selected package", extra={"ctx": {"package": updates["name"]}})

    return config.model_copy(update=updates), report.packages[0]
