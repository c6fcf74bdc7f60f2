"""
Batch driver: discover -> parse -> generate -> write -> manifests.

Documents fail independently. A document that does not parse, or that
uses a construct the generator cannot map, is recorded as skipped and
the batch carries on. Output I/O failures are not caught here: an
unwritable destination aborts the run with ``OSError``.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import GeneratorSettings
from .errors import ConfigurationError, GenerationError, ParseError
from .generators import PythonModuleGenerator
from .lexicon import LexiconDoc, load_document
from .module_tree import ModuleTree
from .naming import dotted, module_parts
from .observability import get_logger
from .resolver import TypeResolver
from .utils import write_text_if_changed

logger = get_logger(__name__)

DOCUMENT_SUFFIX = ".json"


def discover_documents(input_dir: Path) -> List[Path]:
    """Every lexicon file under ``input_dir``, in sorted order."""
    root = Path(input_dir)
    if root.is_file():
        return [root] if root.suffix.lower() == DOCUMENT_SUFFIX else []
    return sorted(path for path in root.rglob(f"*{DOCUMENT_SUFFIX}") if path.is_file())


@dataclass
class SkippedDocument:
    """A document left out of the generated tree, and why."""

    source: str
    reason: str
    nsid: Optional[str] = None
    stage: str = "parse"

    def describe(self) -> str:
        origin = f"{self.source} ({self.nsid})" if self.nsid else self.source
        return f"{origin}: {self.reason}"


@dataclass
class GenerationReport:
    """Outcome of one run."""

    generated: List[str] = field(default_factory=list)
    skipped: List[SkippedDocument] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)
    manifests: List[Path] = field(default_factory=list)

    @property
    def generated_count(self) -> int:
        return len(self.generated)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def ok(self) -> bool:
        return not self.skipped


class CodegenDriver:
    """
    Runs one generation batch for the given settings.

    The resolver and module tree are created per run and dropped with
    the driver's report; nothing is shared between runs.
    """

    def __init__(self, settings: GeneratorSettings):
        self.settings = settings

    def run(self) -> GenerationReport:
        """
        Generate every document under ``settings.input_dir``.

        Raises:
            ConfigurationError: The input directory does not exist
            OSError: The output tree cannot be written
        """
        input_dir = Path(self.settings.input_dir)
        output_dir = Path(self.settings.output_dir)
        if not input_dir.exists():
            raise ConfigurationError(
                f"input directory does not exist: {input_dir}", setting="input_dir"
            )

        sources = discover_documents(input_dir)
        logger.info("Found %d lexicon documents in %s", len(sources), input_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        report = GenerationReport()
        resolver = TypeResolver()
        tree = ModuleTree(output_dir, package=self.settings.package)
        generator = PythonModuleGenerator(
            package=self.settings.package,
            runtime_package=self.settings.runtime_package,
            resolver=resolver,
        )

        documents = self._parse_all(input_dir, sources, tree, resolver, report)
        for source, doc in documents:
            try:
                code = generator.generate(doc)
            except GenerationError as exc:
                self._skip(
                    report,
                    SkippedDocument(source, exc.message, nsid=doc.id, stage="generate"),
                )
                continue

            target = tree.output_path(doc.id)
            if write_text_if_changed(target, code):
                report.written.append(target)
                logger.info("Generated %s -> %s", doc.id, target)
            else:
                logger.debug("Unchanged %s -> %s", doc.id, target)
            tree.track(doc.id)
            report.generated.append(doc.id)

        report.manifests = tree.write_manifests()
        logger.info(
            "Generated %d files, skipped %d", report.generated_count, report.skipped_count
        )
        return report

    def _parse_all(
        self,
        input_dir: Path,
        sources: List[Path],
        tree: ModuleTree,
        resolver: TypeResolver,
        report: GenerationReport,
    ) -> List[Tuple[str, LexiconDoc]]:
        """Parse every document up front so cross-references can be checked."""
        documents: List[Tuple[str, LexiconDoc]] = []
        claimed: Dict[Path, Tuple[str, str]] = {}
        for path in sources:
            source = _display_path(path, input_dir)
            try:
                doc = load_document(path)
            except ParseError as exc:
                self._skip(report, SkippedDocument(source, exc.message, nsid=exc.nsid))
                continue

            target = tree.output_path(doc.id)
            if target in claimed:
                first_source, first_nsid = claimed[target]
                self._skip(
                    report,
                    SkippedDocument(
                        source,
                        f"duplicate of {first_nsid} from {first_source}",
                        nsid=doc.id,
                        stage="duplicate",
                    ),
                )
                continue

            claimed[target] = (source, doc.id)
            documents.append((source, doc))
            logger.debug("Parsed %s from %s", doc.id, source)

        documents = self._drop_shadowed(documents, report)
        for _, doc in documents:
            resolver.register(doc.id)
        return documents

    def _drop_shadowed(
        self, documents: List[Tuple[str, LexiconDoc]], report: GenerationReport
    ) -> List[Tuple[str, LexiconDoc]]:
        """
        Skip documents whose module is also another document's package.

        ``x.y`` (``x/y.py``) cannot be imported next to ``x.y.z`` (package
        ``x/y/``): the package wins, so the module is reported instead.
        """
        packages: Dict[Tuple[str, ...], str] = {}
        for _, doc in documents:
            parts = module_parts(doc.id)
            for depth in range(1, len(parts)):
                packages.setdefault(parts[:depth], doc.id)

        kept: List[Tuple[str, LexiconDoc]] = []
        for source, doc in documents:
            owner = packages.get(module_parts(doc.id))
            if owner is None:
                kept.append((source, doc))
                continue
            self._skip(
                report,
                SkippedDocument(
                    source,
                    f"module {dotted(module_parts(doc.id))} is shadowed by the package of {owner}",
                    nsid=doc.id,
                    stage="conflict",
                ),
            )
        return kept

    @staticmethod
    def _skip(report: GenerationReport, skipped: SkippedDocument) -> None:
        report.skipped.append(skipped)
        logger.warning("Skipping %s", skipped.describe())


def _display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


__all__ = [
    "CodegenDriver",
    "GenerationReport",
    "SkippedDocument",
    "discover_documents",
]
