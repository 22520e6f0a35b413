from __future__ import annotations

from typing import Any

from sqlalchemy import inspect


def model_to_dict(instance: Any, *, exclude: set[str] | None = None) -> dict[str, Any] | None:
    if instance is None:
        return None
    skip = exclude or set()
    mapper = inspect(instance).mapper
    return {
        column.key: getattr(instance, column.key)
        for column in mapper.column_attrs
        if column.key not in skip
    }


def models_to_dicts(instances) -> list[dict[str, Any]]:
    return [model_to_dict(instance) for instance in instances]
