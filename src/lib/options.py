"""
Option merging

Deep-merges user configuration over defaults and validates the result into
an immutable TemplateOptions.
"""

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from ..models.template import TemplateOptions


DEFAULT_OPTIONS: Mapping[str, Any] = MappingProxyType({
    "start_tag": "#{",
    "end_tag": "}#",
    "template_name": "default_name",
    "trim_left": "code",
    "trim_right": "code",
    "base_path": None,
})


def mapping_clone(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively copy a mapping

    Nested mappings are copied into new dicts, every other value is shared.

    Args:
        mapping: Mapping to copy

    Returns:
        A dict that shares no mapping with the input
    """
    clone = {}
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            clone[key] = mapping_clone(value)
        else:
            clone[key] = value
    return clone


def options_merge(
    defaults: Optional[Mapping[str, Any]], override: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Deep-merge two mappings, the second one has precedence

    For every key present in either input: when both sides hold a mapping
    the two are merged recursively, otherwise the override value wins.
    Mapping values are cloned on the way in, so later mutation of either
    input never shows through the result.

    Args:
        defaults: Base mapping (None behaves as empty)
        override: Mapping whose values win on conflicts (None behaves as empty)

    Returns:
        New merged dict

    Example:
        >>> options_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
        {'a': {'x': 1, 'y': 3}, 'b': 4}
    """
    defaults = defaults or {}
    override = override or {}

    merged = mapping_clone(defaults)

    for key, value in override.items():
        if isinstance(value, Mapping):
            base = defaults.get(key)
            if isinstance(base, Mapping):
                merged[key] = options_merge(base, value)
            else:
                merged[key] = mapping_clone(value)
        else:
            merged[key] = value

    return merged


def options_initialise(
    options: Union[None, Mapping[str, Any], TemplateOptions] = None,
    **overrides: Any,
) -> TemplateOptions:
    """
    Build validated options from a partial user configuration

    Args:
        options: Partial mapping, an existing TemplateOptions, or None
        **overrides: Individual fields applied on top of options

    Returns:
        Frozen TemplateOptions

    Raises:
        pydantic.ValidationError: If a field holds an unsupported value
    """
    if isinstance(options, TemplateOptions):
        if not overrides:
            return options
        options = options.model_dump()

    merged = options_merge(DEFAULT_OPTIONS, options)
    merged = options_merge(merged, overrides)
    return TemplateOptions(**merged)
