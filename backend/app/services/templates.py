"""
Template store access.

TemplateRegistry scans the template root once and freezes the set of allowed
template names. TemplateResolver turns an untrusted identifier from a send
request into a path inside that root, refusing anything the registry did not
see at scan time.

Template names are extension-stripped, '/'-separated paths relative to the
root, e.g. ``welcome`` or ``billing/invoice-paid``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, FrozenSet, Mapping, Optional, Union

logger = logging.getLogger(__name__)

TEMPLATE_EXTENSION = ".html"

ERROR_REQUIRED = "template required"
ERROR_INVALID_PATH = "invalid template path"
ERROR_UNKNOWN = "unknown template"
ERROR_OUTSIDE_ROOT = "template path outside allowed directory"

# {{ .first_name }} style placeholders
_PLACEHOLDER_RE = re.compile(r"{{\s*\.([A-Za-z0-9_]+)\s*}}")


class TemplateResolutionError(ValueError):
    """Raised when a template identifier cannot be mapped to an allowed file."""


class TemplateRegistry:
    """
    Immutable allowlist of template names discovered under ``root``.

    The scan happens in the constructor. Files added to disk afterwards are
    not picked up until the process restarts. A failed scan leaves the
    allowlist empty so no template resolves.
    """

    def __init__(self, root: Union[str, Path], extension: str = TEMPLATE_EXTENSION):
        self.root = Path(root).resolve()
        self.extension = extension
        self._names: FrozenSet[str] = self._scan()

    def _scan(self) -> FrozenSet[str]:
        names = set()
        suffix = self.extension

        def _raise(err: OSError) -> None:
            raise err

        try:
            if not self.root.is_dir():
                raise FileNotFoundError(f"Template directory not found: {self.root}")
            for dirpath, _dirnames, filenames in os.walk(self.root, onerror=_raise):
                for filename in filenames:
                    if not filename.endswith(suffix):
                        continue
                    relative = (Path(dirpath) / filename).relative_to(self.root)
                    name = relative.as_posix()[: -len(suffix)]
                    if name:
                        names.add(name)
        except Exception:
            logger.exception(
                "Template scan of %s failed; no templates will be resolvable", self.root
            )
            return frozenset()

        logger.info("Registered %d templates from %s", len(names), self.root)
        return frozenset(names)

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)


class TemplateResolver:
    """Maps untrusted template identifiers onto registry-checked paths."""

    def __init__(self, registry: TemplateRegistry):
        self.registry = registry

    def normalize(self, raw_name: Any) -> str:
        """
        Normalize ``raw_name`` and check it against the allowlist.

        Returns the canonical template name. Raises TemplateResolutionError
        with one of the ERROR_* messages otherwise.
        """
        if not isinstance(raw_name, str) or not raw_name.strip():
            raise TemplateResolutionError(ERROR_REQUIRED)
        if ".." in raw_name:
            raise TemplateResolutionError(ERROR_INVALID_PATH)

        name = raw_name.strip().lstrip("/")
        extension = self.registry.extension
        if name.lower().endswith(extension.lower()):
            name = name[: -len(extension)]
        name = name.strip()

        if name not in self.registry:
            raise TemplateResolutionError(ERROR_UNKNOWN)
        return name

    def resolve(self, raw_name: Any) -> Path:
        """Return the absolute path of an allowed template."""
        name = self.normalize(raw_name)
        root = self.registry.root
        resolved = (root / f"{name}{self.registry.extension}").resolve()
        # Symlinks inside the store can still point elsewhere
        if resolved != root and not str(resolved).startswith(str(root) + os.sep):
            raise TemplateResolutionError(ERROR_OUTSIDE_ROOT)
        return resolved


def render_template(raw: str, data: Optional[Mapping[str, Any]]) -> str:
    """Substitute ``{{ .key }}`` placeholders; missing or None values render empty."""
    data = data or {}

    def _replace(match: "re.Match[str]") -> str:
        value = data.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, raw)


def load_template(resolver: TemplateResolver, name: str, data: Optional[Mapping[str, Any]]) -> str:
    """Read an allowed template from disk and render it with ``data``."""
    path = resolver.resolve(name)
    return render_template(path.read_text(encoding="utf-8"), data)
