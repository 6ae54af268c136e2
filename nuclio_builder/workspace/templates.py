"""Harness registration source, rendered with Jinja2."""

from __future__ import annotations

import re

import jinja2

from nuclio_builder.errors import TemplateError

REGISTRY_TEMPLATE = """\
// Code generated by nuclio-builder. DO NOT EDIT.

package main

import (
	{{ alias }} "{{ module }}/{{ user_functions_path }}/{{ name }}"
	"{{ module }}/pkg/processor/runtime/golang"
)

func init() {
	golang.EventHandlers.Add("{{ name }}", {{ alias }}.{{ handler }})
}
"""

_env = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)


def go_alias(name: str) -> str:
    """Import alias for a function name: a valid, lowercase Go identifier."""
    alias = re.sub(r"\W", "_", name).lower()
    if not alias or alias[0].isdigit():
        alias = "fn_" + alias
    return alias


def registry_file_name(function_name: str) -> str:
    return f"nuclio_user_functions__{function_name.lower()}.go"


def render_registry(name: str, handler: str, module: str, user_functions_path: str) -> str:
    try:
        return _env.from_string(REGISTRY_TEMPLATE).render(
            name=name,
            handler=handler,
            alias=go_alias(name),
            module=module,
            user_functions_path=user_functions_path,
        )
    except jinja2.TemplateError as exc:
        raise TemplateError(f"Unable to render registry template: {exc}") from exc
