"""Configuration resolution: function descriptor + optional build descriptor.

The function descriptor (``processor.yaml``) nests its fields under a
``function`` key; its optional ``build`` section carries ``image`` and
``packages``. The build descriptor (``build.yaml``) holds the same two keys at
the top level and, when present, overrides the descriptor's build section.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from nuclio_builder.errors import ConfigError
from nuclio_builder.logging import get_logger
from nuclio_builder.types import BuildSettings, FunctionConfig
from nuclio_builder.validator import validate_build_descriptor, validate_function_descriptor

log = get_logger().getChild("config")


def _read_document(path: Path) -> dict[str, Any]:
    log.debug("Reading config file", extra={"ctx": {"path": path}})
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError("Configuration file not found", path) from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration ({exc.strerror})", path) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError("Unable to unmarshal configuration", path) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping", path)
    return data


def _validate(validate, data: dict, path: Path) -> None:
    try:
        validate(data)
    except ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ConfigError(f"Invalid configuration at {location} ({exc.message})", path) from exc


def resolve_config(
    function_descriptor_path: Path | str,
    build_descriptor_path: Path | str | None = None,
    settings: BuildSettings | None = None,
    missing_ok: bool = False,
) -> FunctionConfig:
    """Load and merge the descriptors into a ``FunctionConfig``.

    Raises ``ConfigError`` when the function descriptor is malformed, lacks
    the ``function`` section, or is missing and ``missing_ok`` is false. A
    missing descriptor with ``missing_ok`` yields an empty ``function``
    section, leaving name and handler to discovery. A missing build
    descriptor is fine.
    """
    settings = settings or BuildSettings()
    function_path = Path(function_descriptor_path)

    if missing_ok and not function_path.exists():
        log.debug("No function descriptor, using discovery", extra={"ctx": {"path": function_path}})
        document: dict[str, Any] = {"function": {}}
    else:
        document = _read_document(function_path)
    if "function" not in document:
        raise ConfigError("Configuration file has no key 'function'", function_path)
    _validate(validate_function_descriptor, document, function_path)

    section = document["function"] or {}
    build_section = section.get("build") or {}

    image = build_section.get("image") or settings.default_build_image
    packages = list(build_section.get("packages") or [])

    if build_descriptor_path is not None:
        build_path = Path(build_descriptor_path)
        if build_path.is_file():
            build_document = _read_document(build_path)
            _validate(validate_build_descriptor, build_document, build_path)
            image = build_document.get("image") or image
            if "packages" in build_document:
                packages = list(build_document["packages"] or [])
        else:
            log.debug("No build descriptor, using defaults", extra={"ctx": {"path": build_path}})

    return FunctionConfig(
        name=section.get("name") or "",
        handler=section.get("handler") or "",
        image=image,
        packages=tuple(packages),
    )
