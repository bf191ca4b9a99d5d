"""
Build target labels: ``@repo//pkg:name``, ``//pkg:name``, ``//pkg`` and ``:name``.
"""

import posixpath
import re
from dataclasses import dataclass


class LabelError(ValueError):
    """Raised when a label string cannot be parsed."""
    pass


_REPO_RE = re.compile(r"^@?[A-Za-z0-9_.~+-]*$")
_NAME_RE = re.compile(r"^[^:@\s]+$")


@dataclass(frozen=True)
class Label:
    repo: str = ""
    pkg: str = ""
    name: str = ""
    relative: bool = False

    @classmethod
    def parse(cls, text: str) -> "Label":
        """Parse a label string.

        A bare ``name`` (no ``//`` and no ``:``) is taken as a relative label,
        the same as ``:name``.
        """
        if not text or text.strip() != text:
            raise LabelError(f"invalid label {text!r}")

        repo = ""
        rest = text
        if rest.startswith("@"):
            sep = rest.find("//")
            if sep == -1:
                raise LabelError(f"label {text!r} has a repository but no package")
            repo = rest[1:sep]
            if not _REPO_RE.match(repo):
                raise LabelError(f"invalid repository in label {text!r}")
            rest = rest[sep:]

        if not rest.startswith("//"):
            name = rest[1:] if rest.startswith(":") else rest
            if not name or not _NAME_RE.match(name):
                raise LabelError(f"invalid target name in label {text!r}")
            return cls(name=name, relative=True)

        rest = rest[2:]
        if ":" in rest:
            pkg, name = rest.split(":", 1)
        else:
            pkg, name = rest, posixpath.basename(rest)
        if pkg.startswith("/") or pkg.endswith("/") or "//" in pkg:
            raise LabelError(f"invalid package in label {text!r}")
        if not name or not _NAME_RE.match(name):
            raise LabelError(f"invalid target name in label {text!r}")
        return cls(repo=repo, pkg=pkg, name=name)

    def __str__(self) -> str:
        if self.relative:
            return f":{self.name}"
        repo = f"@{self.repo}" if self.repo else ""
        if posixpath.basename(self.pkg) == self.name:
            return f"{repo}//{self.pkg}"
        return f"{repo}//{self.pkg}:{self.name}"
