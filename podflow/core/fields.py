"""Read named fields from a task's resolved configuration."""

from __future__ import annotations

import json
from typing import Any, Mapping, TypeVar

from podflow.core.defaults import TEMPLATE_FIELD
from podflow.core.errors import ConfigExtractionError, ErrorCode

T = TypeVar('T')


def get_field(value: Mapping[str, Any], name: str, default: T) -> T:
    """Return value[name] when present and of the default's type, else default."""
    raw = value.get(name)
    if raw is None or not isinstance(raw, type(default)):
        return default
    return raw


def template_field(value: Mapping[str, Any], name: str = TEMPLATE_FIELD) -> str:
    """Serialize the node's resource template to JSON for submission.

    A template is a single manifest mapping or a list of manifest mappings.

    Raises:
        ConfigExtractionError: the field is absent, of the wrong shape, or
            not JSON serializable.
    """
    if name not in value or value[name] is None:
        raise ConfigExtractionError(
            message=f"task configuration has no '{name}' field",
            code=ErrorCode.TASK_MISSING_FIELD,
            field_name=name,
            help_text=f"add a '{name}' mapping describing the resource to submit",
        )

    template = value[name]
    manifests = template if isinstance(template, list) else [template]
    if not manifests or not all(isinstance(m, Mapping) for m in manifests):
        raise ConfigExtractionError(
            message=f"'{name}' must be a mapping or a non-empty list of mappings",
            code=ErrorCode.TASK_INVALID_TEMPLATE,
            field_name=name,
            notes=[f'got {type(template).__name__}'],
        )

    try:
        return json.dumps(template, default=_reject_unserializable)
    except (TypeError, ValueError) as exc:
        raise ConfigExtractionError(
            message=f"'{name}' is not serializable: {exc}",
            code=ErrorCode.TASK_INVALID_TEMPLATE,
            field_name=name,
        ) from exc


def _reject_unserializable(obj: Any) -> Any:
    # Mapping subclasses (e.g. read-only proxies) are fine; everything else is not
    if isinstance(obj, Mapping):
        return dict(obj)
    raise TypeError(f'{type(obj).__name__} is not JSON serializable')
