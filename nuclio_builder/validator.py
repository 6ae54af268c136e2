"""Schema validation for the function and build descriptors."""

from __future__ import annotations

import json
from functools import cache
from importlib import resources

from jsonschema import Draft202012Validator

# --- Schema loaders ---------------------------------------------------------


@cache
def _load_schema(package: str, resource_name: str) -> dict:
    with resources.files(package).joinpath(resource_name).open("r", encoding="utf-8") as f:
        return json.load(f)


def _function_schema() -> dict:
    return _load_schema("nuclio_builder.schema", "function.schema.json")


def _build_schema() -> dict:
    return _load_schema("nuclio_builder.schema", "build.schema.json")


# --- Public validators ------------------------------------------------------


def validate_function_descriptor(data: dict) -> None:
    Draft202012Validator(_function_schema()).validate(data)


def validate_build_descriptor(data: dict) -> None:
    Draft202012Validator(_build_schema()).validate(data)
