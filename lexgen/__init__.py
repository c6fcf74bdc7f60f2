"""
lexgen - lexicon schema to typed Python code generator.

Reads a tree of lexicon JSON documents (NSID-identified RPC, record and
type definitions) and writes one pydantic module per document into a
package tree that mirrors the namespace, plus ``__init__.py`` manifests.

The code is organised into several modules:

* ``lexicon`` - pydantic model of a lexicon document and the parser.
* ``resolver`` - maps property shapes to Python type expressions.
* ``generators`` - renders one document as Python source.
* ``module_tree`` - NSID -> path mapping and per-directory manifests.
* ``driver`` - runs a batch and reports generated/skipped documents.
* ``runtime`` - declarations the generated code imports.
"""

from .config import GeneratorSettings
from .driver import CodegenDriver, GenerationReport, SkippedDocument, discover_documents
from .errors import ConfigurationError, GenerationError, LexgenError, ParseError
from .generators import PythonModuleGenerator
from .lexicon import LexiconDoc, load_document, parse_document
from .module_tree import ModuleTree
from .resolver import TypeResolver, resolve

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CodegenDriver",
    "ConfigurationError",
    "GenerationError",
    "GenerationReport",
    "GeneratorSettings",
    "LexgenError",
    "LexiconDoc",
    "ModuleTree",
    "ParseError",
    "PythonModuleGenerator",
    "SkippedDocument",
    "TypeResolver",
    "discover_documents",
    "load_document",
    "parse_document",
    "resolve",
]
