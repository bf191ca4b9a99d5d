"""
Source model for .proto files, the file loader, and the file matcher.

A ``ProtoFile`` is built by ``ProtoFileParser`` in one pass and is read-only
afterwards; re-parsing produces a new instance.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .label import Label
from .lexer import tokenize
from .parser import (
    Enum,
    EnumValue,
    Import,
    Message,
    Option,
    Package,
    Parser,
    Service,
    NODE_ENUM,
    NODE_ENUM_VALUE,
    NODE_EXTEND,
    NODE_GROUP,
    NODE_IMPORT,
    NODE_MESSAGE,
    NODE_ONEOF,
    NODE_OPTION,
    NODE_PACKAGE,
    NODE_SERVICE,
)

# When set, relative proto paths are resolved against this directory rather
# than the process working directory (bazel run sets it to the workspace root).
WORKSPACE_ENV = "BUILD_WORKSPACE_DIRECTORY"

PROTO_EXT = ".proto"

log = logging.getLogger(__name__)


def is_proto_file(filename: str) -> bool:
    return os.path.splitext(filename)[1] == PROTO_EXT


# ── Errors ───────────────────────────────────────────────────────────

class ProtoError(Exception):
    """Base class for failures loading a single .proto file."""
    pass


class ProtoNotFoundError(ProtoError):
    """The .proto file could not be opened or read."""

    def __init__(self, path: str, cause: OSError, cwd: str = ""):
        self.path = path
        self.cause = cause
        self.cwd = cwd
        super().__init__(f"could not open {path}: {cause} (cwd={cwd})")


class ProtoSyntaxError(ProtoError):
    """The .proto file was read but could not be parsed."""

    def __init__(self, relname: str, cause: Exception):
        self.relname = relname
        self.cause = cause
        super().__init__(f"could not parse {relname}: {cause}")


# ── Source model ─────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class ProtoFile:
    """A .proto file discovered in a package directory.

    Fields cannot be reassigned, but the AST nodes they hold are plain
    dataclasses and must not be modified either.  Equality and hashing are
    by identity.
    """
    dirname: str                       # e.g. "rosetta/common"
    basename: str                      # e.g. "foo.proto"
    package: Optional[Package] = None
    imports: Tuple[Import, ...] = ()
    options: Tuple[Option, ...] = ()   # top-level only
    enums: Tuple[Enum, ...] = ()
    messages: Tuple[Message, ...] = ()
    services: Tuple[Service, ...] = ()
    enum_options: Tuple[Option, ...] = ()

    @property
    def name(self) -> str:
        """Logical name: the basename without its extension (e.g. "foo")."""
        return os.path.splitext(self.basename)[0]

    def relname(self) -> str:
        if not self.dirname:
            return self.basename
        return os.path.join(self.dirname, self.basename)

    def get_options(self) -> Tuple[Option, ...]:
        return self.options

    def has_enums(self) -> bool:
        return len(self.enums) > 0

    def has_messages(self) -> bool:
        return len(self.messages) > 0

    def has_services(self) -> bool:
        return len(self.services) > 0

    def has_enum_option(self, name: str) -> bool:
        """True if any enum or enum value carries the named option."""
        for option in self.enum_options:
            if option.name == name:
                return True
        return False

    def go_package(self) -> Optional[Tuple[str, str]]:
        """Return (importpath, alias) from the go_package option, if present.

        "github.com/foo/bar/v1;bar" -> ("github.com/foo/bar/v1", "bar").
        The alias is empty when the option has no ";".
        """
        for option in self.options:
            if option.name != "go_package":
                continue
            parts = option.value.split(";", 1)
            if len(parts) == 1:
                return parts[0], ""
            return parts[0], parts[1]
        return None


class EnumOptionCollector:
    """Collects the options attached to enums and to enum values.

    These never show up among the top-level options, so they are gathered by
    walking every enum separately.
    """

    def __init__(self):
        self.options: List[Option] = []

    def visit_enum(self, enum: Enum):
        for element in enum.elements:
            if element.kind == NODE_OPTION:
                self.options.append(element)
            elif element.kind == NODE_ENUM_VALUE:
                self.visit_enum_value(element)

    def visit_enum_value(self, value: EnumValue):
        self.options.extend(value.options)


class _Builder:
    """Accumulates declarations during the walk over a parsed file."""

    def __init__(self):
        self.package: Optional[Package] = None
        self.imports: List[Import] = []
        self.options: List[Option] = []
        self.enums: List[Enum] = []
        self.messages: List[Message] = []
        self.services: List[Service] = []

    def walk(self, elements: list, top_level: bool = True):
        for element in elements:
            kind = element.kind
            if kind == NODE_PACKAGE:
                self.package = element
            elif kind == NODE_OPTION:
                if top_level:
                    self.options.append(element)
            elif kind == NODE_IMPORT:
                self.imports.append(element)
            elif kind == NODE_ENUM:
                self.enums.append(element)
            elif kind == NODE_SERVICE:
                self.services.append(element)
            elif kind == NODE_MESSAGE:
                self.messages.append(element)
                self.walk(element.elements, top_level=False)
            elif kind in (NODE_GROUP, NODE_ONEOF, NODE_EXTEND):
                # Groups declare a nested message type and may sit in a
                # oneof or an extend.
                self.walk(element.elements, top_level=False)

    def build(self, dirname: str, basename: str) -> ProtoFile:
        collector = EnumOptionCollector()
        for enum in self.enums:
            collector.visit_enum(enum)

        return ProtoFile(
            dirname=dirname,
            basename=basename,
            package=self.package,
            imports=tuple(self.imports),
            options=tuple(self.options),
            enums=tuple(self.enums),
            messages=tuple(self.messages),
            services=tuple(self.services),
            enum_options=tuple(collector.options),
        )


# ── Loader ───────────────────────────────────────────────────────────

class ProtoFileParser:
    """Reads and parses .proto files into ``ProtoFile`` models.

    Holds no per-file state, so one instance may be shared by concurrent
    callers.
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.logger = logger or log
        self.environ = os.environ if environ is None else environ

    def working_directory(self) -> str:
        """Directory that relative proto paths are resolved against."""
        workspace = self.environ.get(WORKSPACE_ENV)
        if workspace:
            return workspace
        return os.getcwd()

    def parse(self, dirname: str, basename: str) -> ProtoFile:
        """Read ``<workspace>/<dirname>/<basename>`` and parse it.

        Raises:
            ProtoNotFoundError: If the file cannot be opened or read.
            ProtoSyntaxError: If the file content is not valid proto syntax.
        """
        wd = self.working_directory()
        path = os.path.abspath(os.path.join(wd, dirname, basename))
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise ProtoSyntaxError(os.path.join(dirname, basename), e) from e
        except OSError as e:
            raise ProtoNotFoundError(path, e, wd) from e

        self.logger.debug("parsing %s", path)
        return self.parse_text(text, dirname, basename)

    def parse_text(self, text: str, dirname: str = "", basename: str = "") -> ProtoFile:
        """Parse proto source text; the result is all-or-nothing."""
        try:
            definition = Parser(tokenize(text)).parse()
        except SyntaxError as e:
            relname = os.path.join(dirname, basename) if dirname else basename
            raise ProtoSyntaxError(relname, e) from e

        builder = _Builder()
        builder.walk(definition.elements)
        return builder.build(dirname, basename)


# ── Matcher ──────────────────────────────────────────────────────────

def _src_name(src: Union[Label, str]) -> str:
    if isinstance(src, Label):
        return src.name
    return Label.parse(src).name


class FileMatcher:
    """Selects the parsed files that a list of source labels refers to."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or log

    def match(self, files: Mapping[str, ProtoFile],
              srcs: Sequence[Union[Label, str]]) -> List[ProtoFile]:
        """Return the files named by ``srcs``, in request order.

        Requests with no matching file are skipped; they may name files that
        live in another package.  Duplicate requests yield duplicate results.
        """
        self.logger.debug("matching %d srcs against %d files", len(srcs), len(files))

        matching: List[ProtoFile] = []
        for src in srcs:
            proto_file = files.get(_src_name(src))
            if proto_file is None:
                self.logger.debug("no proto file for %s", src)
                continue
            matching.append(proto_file)

        self.logger.debug("matched %d", len(matching))
        return matching


def matching_files(files: Mapping[str, ProtoFile],
                   srcs: Sequence[Union[Label, str]]) -> List[ProtoFile]:
    return FileMatcher().match(files, srcs)


def index_files(proto_files: Sequence[ProtoFile]) -> Dict[str, ProtoFile]:
    """Key files by logical name, the lookup key used by ``FileMatcher``."""
    return {proto_file.name: proto_file for proto_file in proto_files}
