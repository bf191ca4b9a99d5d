"""
proto_compile rule synthesis.

A ``ProtoCompileRule`` describes the generated sources for one proto_library
and one family of plugins (e.g. "go" or "grpc_go").  The rule is an abstract
``Rule`` value; ``emitter`` renders it as build file text.

The ``options`` attribute is emitted in sorted order because generated build
files are compared against the previous generation to detect changes.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

from .label import Label
from .proto_file import ProtoFile

PROTO_COMPILE_KIND = "proto_compile"
PROTO_COMPILE_LOAD = "@build_stack_rules_proto//rules:proto_compile.bzl"


@dataclass(frozen=True)
class KindInfo:
    """How an existing rule of a kind is matched and merged."""
    non_empty_attrs: FrozenSet[str] = frozenset()
    mergeable_attrs: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class LoadInfo:
    """A .bzl file and the symbols loaded from it."""
    name: str
    symbols: Tuple[str, ...] = ()


@dataclass
class Rule:
    """Abstract build rule: kind, name, ordered attributes and deps."""
    kind: str
    name: str
    attrs: Dict[str, object] = field(default_factory=dict)
    deps: List[str] = field(default_factory=list)
    comment: List[str] = field(default_factory=list)

    def set_attr(self, key: str, value: object):
        self.attrs[key] = value

    def attr(self, key: str) -> Optional[object]:
        return self.attrs.get(key)

    def add_comment(self, line: str):
        self.comment.append(line)


@dataclass(frozen=True, eq=False)
class ProtoLibrary:
    """The proto_library a compile rule depends on; compared by identity."""
    base_name: str
    files: Tuple[ProtoFile, ...] = ()

    @property
    def name(self) -> str:
        return f"{self.base_name}_proto"

    @classmethod
    def from_file(cls, proto_file: ProtoFile) -> "ProtoLibrary":
        return cls(base_name=proto_file.name, files=(proto_file,))


class ProtoCompileRule:
    """
    Builds the ``proto_compile`` rule for a library.

    ``generated_srcs`` is precomputed by the caller, which knows each
    plugin's output naming; this class never touches the filesystem.
    Inputs are copied, never mutated.
    """

    def __init__(self,
                 prefix: str,
                 library: ProtoLibrary,
                 plugins: Sequence[Union[Label, str]],
                 generated_srcs: Sequence[str],
                 generated_options: Mapping[str, Sequence[str]],
                 visibility: Sequence[str] = (),
                 comment: Sequence[str] = ()):
        self.prefix = prefix
        self.library = library
        self.plugins = list(plugins)
        self._generated_srcs = list(generated_srcs)
        # Plugins without options contribute no entry.
        self.generated_options = {k: list(v) for k, v in generated_options.items() if v}
        self._visibility = list(visibility)
        self.comment = list(comment)

    def kind(self) -> str:
        return PROTO_COMPILE_KIND

    def name(self) -> str:
        return f"{self.library.base_name}_{self.prefix}_compile"

    def imports(self) -> List[str]:
        return [self.kind()]

    def visibility(self) -> List[str]:
        return list(self._visibility)

    def kind_info(self) -> KindInfo:
        return KindInfo(non_empty_attrs=frozenset({"deps"}),
                        mergeable_attrs=frozenset())

    def load_info(self) -> LoadInfo:
        return LoadInfo(name=PROTO_COMPILE_LOAD, symbols=tuple(self.imports()))

    def deps(self) -> List[str]:
        return [":" + self.library.name]

    def plugin_labels(self) -> List[str]:
        return [str(plugin) for plugin in self.plugins]

    def generated_srcs(self) -> List[str]:
        return list(self._generated_srcs)

    def options(self) -> Dict[str, str]:
        """Options keyed by plugin name, each value the sorted options joined by ','."""
        return {
            name: ",".join(sorted(self.generated_options[name]))
            for name in sorted(self.generated_options)
        }

    def rule(self) -> Rule:
        new_rule = Rule(kind=self.kind(), name=self.name())
        if self._visibility:
            new_rule.set_attr("visibility", self.visibility())
        for line in self.comment:
            new_rule.add_comment(line)

        new_rule.set_attr("proto", self.library.name)
        new_rule.set_attr("plugins", self.plugin_labels())
        new_rule.set_attr("generated_srcs", self.generated_srcs())

        if self.generated_options:
            new_rule.set_attr("options", self.options())

        new_rule.deps = self.deps()
        return new_rule


def synthesize(prefix: str,
               proto_file: ProtoFile,
               plugins: Sequence[Union[Label, str]],
               generated_srcs: Sequence[str],
               options_by_plugin: Mapping[str, Sequence[str]],
               visibility: Sequence[str] = (),
               comment: Sequence[str] = ()) -> Rule:
    """Build the proto_compile rule for a single proto file."""
    return ProtoCompileRule(
        prefix,
        ProtoLibrary.from_file(proto_file),
        plugins,
        generated_srcs,
        options_by_plugin,
        visibility=visibility,
        comment=comment,
    ).rule()
