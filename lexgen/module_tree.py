"""
Namespace -> module tree bookkeeping and ``__init__.py`` manifests.

Every NSID maps to one module: namespace segments are package
directories, the last segment is the snake_case module file. While a
batch is processed each generated NSID is tracked; once the batch is
done every directory that gained children gets an ``__init__.py``
listing them, sorted, in ``__all__``.

Example:
    ```python
    tree = ModuleTree(Path("generated"))
    tree.output_path("com.example.getThing")  # generated/com/example/get_thing.py
    tree.track("com.example.getThing")
    tree.children(("com", "example"))          # ["get_thing"]
    tree.write_manifests()
    ```
"""

from pathlib import Path
from typing import Dict, List, Set, Tuple

from .naming import dotted, module_parts
from .utils import write_text_if_changed

MANIFEST_NAME = "__init__.py"

Directory = Tuple[str, ...]


class ModuleTree:
    """Accumulates directory -> child names for one generation run."""

    def __init__(self, root: Path, package: str = ""):
        self.root = Path(root)
        self.package = package
        self._children: Dict[Directory, Set[str]] = {}

    def output_path(self, nsid: str) -> Path:
        """Path of the module generated for ``nsid``."""
        parts = module_parts(nsid)
        return self.root.joinpath(*parts[:-1], f"{parts[-1]}.py")

    def track(self, nsid: str) -> None:
        """
        Record ``nsid`` in every ancestor directory.

        Idempotent: tracking the same NSID twice, or NSIDs sharing a
        prefix, never duplicates a child.
        """
        parts = module_parts(nsid)
        for depth in range(len(parts)):
            self._children.setdefault(parts[:depth], set()).add(parts[depth])

    def children(self, directory: Directory) -> List[str]:
        return sorted(self._children.get(tuple(directory), ()))

    def directories(self) -> List[Directory]:
        return sorted(self._children)

    def manifest_path(self, directory: Directory) -> Path:
        return self.root.joinpath(*directory, MANIFEST_NAME)

    def render_manifest(self, directory: Directory) -> str:
        """Source of the ``__init__.py`` for ``directory``."""
        name = dotted([self.package, *directory]) or "generated lexicon modules"
        lines = [
            '"""',
            f"Package {name}.",
            "",
            "DO NOT EDIT: This file is auto-generated.",
            '"""',
            "",
            "__all__ = [",
        ]
        lines.extend(f'    "{child}",' for child in self.children(directory))
        lines.append("]")
        return "\n".join(lines) + "\n"

    def write_manifests(self) -> List[Path]:
        """
        Write one manifest per tracked directory, in sorted order.

        Returns the manifest paths, including ones whose content was
        already up to date.
        """
        paths = []
        for directory in self.directories():
            path = self.manifest_path(directory)
            write_text_if_changed(path, self.render_manifest(directory))
            paths.append(path)
        return paths


__all__ = ["MANIFEST_NAME", "ModuleTree"]
