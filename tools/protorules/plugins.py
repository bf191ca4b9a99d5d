"""
Protoc plugin configuration: the YAML plugin list and its projections.

Each plugin names the build target that implements it, the generation
options passed to it, and the outputs it is expected to produce for the
sources it consumes.
"""

import yaml
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .label import Label, LabelError


class ValidationError(Exception):
    """Raised when a plugin YAML file fails validation."""
    pass


@dataclass(frozen=True)
class PluginConfiguration:
    """A protoc plugin and the sources and source mappings it produces."""
    label: Label
    name: str
    mappings: Dict[str, str] = field(default_factory=dict)
    options: Tuple[str, ...] = ()
    out: str = ""
    srcs: Tuple[Label, ...] = ()


def plugin_labels(plugins: Sequence[PluginConfiguration]) -> List[str]:
    """Return the label strings for a list of plugins, in order."""
    return [str(plugin.label) for plugin in plugins]


def plugin_options(plugins: Sequence[PluginConfiguration]) -> Dict[str, List[str]]:
    """Return the options by plugin name, skipping plugins without options."""
    options: Dict[str, List[str]] = {}
    for plugin in plugins:
        if not plugin.options:
            continue
        options[plugin.name] = list(plugin.options)
    return options


def plugin_outs(plugins: Sequence[PluginConfiguration]) -> Dict[str, str]:
    """Return the output location by plugin name, skipping unset ones."""
    outs: Dict[str, str] = {}
    for plugin in plugins:
        if not plugin.out:
            continue
        outs[plugin.name] = plugin.out
    return outs


def _require(data: dict, key: str, context: str) -> object:
    """Require a key in a dict, raising ValidationError if missing."""
    if key not in data or data[key] is None:
        raise ValidationError(
            f"Missing required field '{key}' in {context}"
        )
    return data[key]


def _string_list(data: dict, key: str, context: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"Field '{key}' in {context} must be a list")
    return [str(item) for item in value]


def _parse_label(text: str, key: str, context: str) -> Label:
    try:
        return Label.parse(text)
    except LabelError as e:
        raise ValidationError(f"Field '{key}' in {context}: {e}")


def _parse_plugin(data: object, context: str) -> PluginConfiguration:
    if not isinstance(data, dict):
        raise ValidationError(f"{context} must be a mapping")

    name = str(_require(data, "name", context))
    label = _parse_label(str(_require(data, "label", context)), "label", context)

    mappings_section = data.get("mappings") or {}
    if not isinstance(mappings_section, dict):
        raise ValidationError(f"Field 'mappings' in {context} must be a mapping")
    mappings = {str(k): str(v) for k, v in mappings_section.items()}

    out = data.get("out")
    srcs = tuple(_parse_label(src, "srcs", context)
                 for src in _string_list(data, "srcs", context))

    return PluginConfiguration(
        label=label,
        name=name,
        mappings=mappings,
        options=tuple(_string_list(data, "options", context)),
        out="" if out is None else str(out),
        srcs=srcs,
    )


def parse_plugins_yaml(yaml_str: str) -> List[PluginConfiguration]:
    """Parse a YAML plugin list into PluginConfigurations.

    Args:
        yaml_str: YAML string with a top-level ``plugins`` sequence.

    Returns:
        The plugins in declaration order.

    Raises:
        ValidationError: If required fields are missing or invalid.
    """
    if not yaml_str or not yaml_str.strip():
        raise ValidationError("Empty YAML input")

    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML: {e}")

    if not isinstance(data, dict):
        raise ValidationError("YAML root must be a mapping")

    plugins_section = _require(data, "plugins", "root section")
    if not isinstance(plugins_section, list):
        raise ValidationError("'plugins' must be a list")

    return [_parse_plugin(entry, f"plugins[{i}]")
            for i, entry in enumerate(plugins_section)]
