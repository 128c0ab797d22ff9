"""Merging of config layers (system, user, project, environment)."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``, recursing into sections.

    A None in ``override`` leaves the base value in place, so a layer only
    needs to name the keys it changes. Lists and scalars are replaced.
    Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        merged[key] = (
            deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def merge_configs(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold config layers from lowest to highest precedence; empty layers are skipped."""
    merged: dict[str, Any] = {}
    for layer in filter(None, layers):
        merged = deep_merge(merged, layer)
    return merged
