"""Signature descriptors and the event-handler acceptance rule.

A handler has the shape::

    func Name(context *nuclio.Context, event nuclio.Event) (interface{}, error)

Types are described by kind rather than by string so the rule below can be
checked in isolation from the parser.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from nuclio_builder.logging import get_logger

log = get_logger().getChild("detect")


class TypeKind(str, Enum):
    NAMED = "named"
    POINTER_TO_NAMED = "pointerToNamed"
    QUALIFIED_NAME = "qualifiedName"
    EMPTY_INTERFACE = "emptyInterface"
    OTHER = "other"


@dataclass(frozen=True)
class TypeRef:
    kind: TypeKind
    name: str = ""
    package: str | None = None

    @property
    def resolved_name(self) -> str:
        """Type name with pointer and package qualifier stripped."""
        return self.name


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    params: tuple[TypeRef, ...] = field(default_factory=tuple)
    results: tuple[TypeRef, ...] = field(default_factory=tuple)

    @property
    def exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()

    @property
    def param_count(self) -> int:
        return len(self.params)

    @property
    def result_count(self) -> int:
        return len(self.results)

    @property
    def param_type_names(self) -> list[str]:
        return [p.resolved_name for p in self.params]

    @property
    def result_type_names(self) -> list[str]:
        return [r.resolved_name for r in self.results]


HANDLER_PARAM_NAMES = ("Context", "Event")


def is_handler_candidate(sig: FunctionSignature, require_error_result: bool = False) -> bool:
    if not sig.exported:
        return False

    if sig.param_count != 2 or tuple(sig.param_type_names) != HANDLER_PARAM_NAMES:
        return False

    if sig.result_count != 2 or sig.results[0].kind is not TypeKind.EMPTY_INTERFACE:
        return False

    # second result only gates acceptance in strict mode
    second = sig.results[1]
    if second.resolved_name != "error":
        log.debug(
            "Handler second result is not error",
            extra={"ctx": {"function": sig.name, "type": second.resolved_name or second.kind.value}},
        )
        return not require_error_result

    return True
