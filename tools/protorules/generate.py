"""
Per-directory rule generation: discover .proto files, parse them, and
synthesize one proto_compile rule per file.

A file that fails to load is logged and skipped; the other files in the
directory are still processed.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .compile_rule import ProtoCompileRule, ProtoLibrary, Rule, LoadInfo
from .plugins import PluginConfiguration, plugin_options
from .proto_file import (
    FileMatcher,
    ProtoError,
    ProtoFile,
    ProtoFileParser,
    index_files,
    is_proto_file,
)


@dataclass
class GenerateResult:
    rules: List[Rule] = field(default_factory=list)
    loads: List[LoadInfo] = field(default_factory=list)
    errors: List[ProtoError] = field(default_factory=list)


def find_proto_files(dirname: str, workspace: str) -> List[str]:
    """Return the sorted basenames of the .proto files in a directory."""
    path = os.path.join(workspace, dirname)
    return sorted(
        entry for entry in os.listdir(path)
        if is_proto_file(entry) and os.path.isfile(os.path.join(path, entry))
    )


def applicable_plugins(proto_file: ProtoFile,
                       files: Mapping[str, ProtoFile],
                       plugins: Sequence[PluginConfiguration],
                       matcher: FileMatcher) -> List[PluginConfiguration]:
    """Plugins whose srcs name this file; a plugin without srcs applies to all."""
    selected = []
    for plugin in plugins:
        matched = matcher.match(files, plugin.srcs)
        if not plugin.srcs or any(m is proto_file for m in matched):
            selected.append(plugin)
    return selected


def generated_srcs(proto_file: ProtoFile,
                   plugins: Sequence[PluginConfiguration]) -> List[str]:
    """Outputs the plugins map this file to, in plugin order."""
    return [plugin.mappings[proto_file.name]
            for plugin in plugins if proto_file.name in plugin.mappings]


def generate_rules(dirname: str,
                   plugins: Sequence[PluginConfiguration],
                   prefix: str,
                   parser: Optional[ProtoFileParser] = None,
                   matcher: Optional[FileMatcher] = None,
                   visibility: Sequence[str] = ()) -> GenerateResult:
    """Generate the proto_compile rules for the .proto files in ``dirname``.

    ``dirname`` is relative to the parser's working directory.
    """
    parser = parser or ProtoFileParser()
    matcher = matcher or FileMatcher(parser.logger)
    result = GenerateResult()

    parsed = []
    for basename in find_proto_files(dirname, parser.working_directory()):
        try:
            parsed.append(parser.parse(dirname, basename))
        except ProtoError as e:
            parser.logger.warning("%s", e)
            result.errors.append(e)

    files = index_files(parsed)
    for proto_file in parsed:
        selected = applicable_plugins(proto_file, files, plugins, matcher)
        if not selected:
            parser.logger.debug("no plugins apply to %s", proto_file.relname())
            continue

        compile_rule = ProtoCompileRule(
            prefix,
            ProtoLibrary.from_file(proto_file),
            [plugin.label for plugin in selected],
            generated_srcs(proto_file, selected),
            plugin_options(selected),
            visibility=visibility,
        )
        result.rules.append(compile_rule.rule())
        if compile_rule.load_info() not in result.loads:
            result.loads.append(compile_rule.load_info())

    return result
