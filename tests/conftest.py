"""Shared pytest fixtures and configuration for lexgen tests."""

import asyncio
import copy
import inspect
import json
import logging
from pathlib import Path

import pytest

from lexgen.config import GeneratorSettings


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Run async test functions without requiring external plugins."""
    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(test_function)
            filtered_args = {k: v for k, v in pyfuncitem.funcargs.items() if k in sig.parameters}
            loop.run_until_complete(test_function(**filtered_args))
        finally:
            loop.close()
            asyncio.set_event_loop(None)
        return True
    return None


@pytest.fixture(autouse=True)
def restore_lexgen_logger():
    """configure_logging() detaches the lexgen logger from root; undo that per test."""
    logger = logging.getLogger("lexgen")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def lexicon_dir(tmp_path: Path) -> Path:
    path = tmp_path / "lexicons"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "generated"


@pytest.fixture
def write_lexicon(lexicon_dir: Path):
    """Write a lexicon document (dict or raw text) under the input tree."""

    def _write(document, name=None) -> Path:
        if name is None:
            name = document["id"].replace(".", "/") + ".json"
        path = lexicon_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        content = document if isinstance(document, str) else json.dumps(document, indent=2)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(lexicon_dir: Path, output_dir: Path) -> GeneratorSettings:
    return GeneratorSettings(input_dir=lexicon_dir, output_dir=output_dir)


GET_THING = {
    "lexicon": 1,
    "id": "com.example.getThing",
    "defs": {
        "main": {
            "type": "query",
            "parameters": {
                "type": "params",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
            },
            "output": {"encoding": "application/json"},
        }
    },
}

DEFS = {
    "lexicon": 1,
    "id": "com.example.defs",
    "defs": {
        "thing": {
            "type": "object",
            "required": ["uri"],
            "properties": {
                "uri": {"type": "string", "format": "at-uri"},
                "owner": {"type": "string", "format": "did"},
                "count": {"type": "integer", "default": 0},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
        },
        "label": {"type": "string", "maxLength": 64},
        "featured": {"type": "token", "description": "Featured marker."},
    },
}

CREATE_THING = {
    "lexicon": 1,
    "id": "com.example.createThing",
    "defs": {
        "main": {
            "type": "procedure",
            "description": "Create a thing.",
            "input": {
                "encoding": "application/json",
                "schema": {
                    "type": "object",
                    "required": ["thing"],
                    "properties": {
                        "thing": {"type": "ref", "ref": "com.example.defs#thing"},
                        "validate": {"type": "boolean", "default": True},
                    },
                },
            },
            "output": {
                "encoding": "application/json",
                "schema": {
                    "type": "object",
                    "properties": {"uri": {"type": "string", "format": "at-uri"}},
                },
            },
            "errors": [{"name": "InvalidThing", "description": "Rejected."}],
        }
    },
}

POST_RECORD = {
    "lexicon": 1,
    "id": "com.example.post",
    "defs": {
        "main": {
            "type": "record",
            "key": "tid",
            "description": "A post.",
            "record": {
                "type": "object",
                "required": ["text"],
                "properties": {
                    "text": {"type": "string", "description": "Post body."},
                    "createdAt": {"type": "string", "format": "datetime"},
                },
            },
        }
    },
}


@pytest.fixture
def sample_documents():
    """A small, self-consistent batch of lexicons, keyed by NSID."""
    return {
        doc["id"]: copy.deepcopy(doc) for doc in (GET_THING, DEFS, CREATE_THING, POST_RECORD)
    }
