"""
Integration tests for the generation driver.

Tests the complete run:
1. Discover lexicon documents
2. Parse and generate each one, skipping failures
3. Write modules and manifests
4. Import the generated package and call a binding through a fake client
"""

import importlib
import logging
import sys

import pytest

from lexgen.config import GeneratorSettings
from lexgen.driver import CodegenDriver, discover_documents
from lexgen.errors import ConfigurationError
from lexgen.runtime.xrpc import XrpcMethod, XrpcResponse

BAD_TYPE = {
    "lexicon": 1,
    "id": "com.example.broken",
    "defs": {"main": {"type": "widget"}},
}

BAD_ENCODING = {
    "lexicon": 1,
    "id": "com.example.sendThing",
    "defs": {"main": {"type": "procedure", "input": {"encoding": "not-a-mime"}}},
}


def lexicon(nsid, **defs):
    return {"lexicon": 1, "id": nsid, "defs": defs}


def snapshot(root):
    return {
        path.relative_to(root): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


class RecordingClient:
    """XrpcClient that records requests and answers with canned data."""

    def __init__(self, data=None):
        self.data = data
        self.requests = []

    async def request(self, request, output_type=None):
        self.requests.append((request, output_type))
        if output_type is None or self.data is None:
            return XrpcResponse(data=None)
        return XrpcResponse(data=output_type.model_validate(self.data))


@pytest.fixture
def import_root(tmp_path, monkeypatch):
    """Directory on sys.path holding the generated ``lexout`` package."""
    root = tmp_path / "site"
    monkeypatch.syspath_prepend(str(root))
    yield root
    for name in list(sys.modules):
        if name == "lexout" or name.startswith("lexout."):
            del sys.modules[name]


class TestDiscovery:
    def test_sorted_json_files(self, lexicon_dir, write_lexicon, sample_documents):
        for doc in sample_documents.values():
            write_lexicon(doc)
        (lexicon_dir / "README.md").write_text("not a lexicon", encoding="utf-8")

        found = discover_documents(lexicon_dir)

        assert found == sorted(found)
        assert len(found) == 4
        assert all(path.suffix == ".json" for path in found)


class TestDriverRun:
    """Test batch behaviour of CodegenDriver.run()."""

    def test_end_to_end_example(self, settings, output_dir, write_lexicon, sample_documents):
        """A single query document yields its module and manifest entry."""
        write_lexicon(sample_documents["com.example.getThing"])

        report = CodegenDriver(settings).run()

        assert report.generated == ["com.example.getThing"]
        module = output_dir / "com" / "example" / "get_thing.py"
        assert module.exists()
        source = module.read_text(encoding="utf-8")
        assert "class QueryParams(BaseModel):" in source
        assert "    id: str\n" in source

        manifest = (output_dir / "com" / "example" / "__init__.py").read_text(encoding="utf-8")
        assert '"get_thing"' in manifest
        assert (output_dir / "__init__.py").exists()
        assert (output_dir / "com" / "__init__.py").exists()

    def test_partial_failure(self, settings, output_dir, write_lexicon, sample_documents):
        """One document with an unknown type is skipped; the others are generated."""
        for doc in sample_documents.values():
            write_lexicon(doc)
        write_lexicon(BAD_TYPE)

        report = CodegenDriver(settings).run()

        assert report.generated_count == 4
        assert report.skipped_count == 1
        skipped = report.skipped[0]
        assert skipped.nsid == "com.example.broken"
        assert skipped.stage == "parse"
        assert skipped.source.endswith("broken.json")
        assert not (output_dir / "com" / "example" / "broken.py").exists()

        manifest = (output_dir / "com" / "example" / "__init__.py").read_text(encoding="utf-8")
        assert '"broken"' not in manifest
        for name in ("create_thing", "defs", "get_thing", "post"):
            assert f'"{name}"' in manifest

    def test_generation_failure_is_skipped(self, settings, write_lexicon, sample_documents):
        write_lexicon(sample_documents["com.example.getThing"])
        write_lexicon(BAD_ENCODING)

        report = CodegenDriver(settings).run()

        assert report.generated == ["com.example.getThing"]
        assert [s.stage for s in report.skipped] == ["generate"]
        assert "not-a-mime" in report.skipped[0].reason

    def test_invalid_json_is_skipped(self, settings, write_lexicon, sample_documents):
        write_lexicon(sample_documents["com.example.post"])
        write_lexicon("{ nope", name="junk.json")

        report = CodegenDriver(settings).run()

        assert report.generated == ["com.example.post"]
        assert report.skipped[0].source == "junk.json"
        assert report.skipped[0].nsid is None

    def test_duplicate_nsid(self, settings, write_lexicon, sample_documents):
        """The first file (in sorted order) wins; later copies are reported."""
        doc = sample_documents["com.example.getThing"]
        write_lexicon(doc, name="a.json")
        write_lexicon(doc, name="b.json")

        report = CodegenDriver(settings).run()

        assert report.generated == ["com.example.getThing"]
        assert report.skipped[0].source == "b.json"
        assert report.skipped[0].stage == "duplicate"
        assert "a.json" in report.skipped[0].reason

    def test_module_shadowed_by_package_is_skipped(self, settings, output_dir, write_lexicon):
        """``x.y`` would be ``x/y.py`` next to the ``x/y/`` package of ``x.y.z``."""
        write_lexicon(lexicon("x.y", main={"type": "object", "properties": {}}))
        write_lexicon(lexicon("x.y.z", main={"type": "string"}))

        report = CodegenDriver(settings).run()

        assert report.generated == ["x.y.z"]
        assert [(s.nsid, s.stage) for s in report.skipped] == [("x.y", "conflict")]
        assert "x.y.z" in report.skipped[0].reason
        assert not (output_dir / "x" / "y.py").exists()
        assert (output_dir / "x" / "y" / "z.py").exists()
        manifest = (output_dir / "x" / "__init__.py").read_text(encoding="utf-8")
        assert manifest.count('"y"') == 1

    def test_idempotent_runs(self, settings, output_dir, write_lexicon, sample_documents):
        """A second run over unchanged input rewrites nothing."""
        for doc in sample_documents.values():
            write_lexicon(doc)

        first = CodegenDriver(settings).run()
        before = snapshot(output_dir)
        second = CodegenDriver(settings).run()

        assert len(first.written) == 4
        assert second.written == []
        assert second.generated == first.generated
        assert snapshot(output_dir) == before

    def test_unresolved_reference_warns_but_generates(
        self, settings, write_lexicon, sample_documents, caplog
    ):
        write_lexicon(sample_documents["com.example.createThing"])

        with caplog.at_level(logging.WARNING, logger="lexgen"):
            report = CodegenDriver(settings).run()

        assert report.generated == ["com.example.createThing"]
        assert any("com.example.defs" in record.getMessage() for record in caplog.records)

    def test_skips_are_logged(self, settings, write_lexicon, caplog):
        write_lexicon(BAD_TYPE)

        with caplog.at_level(logging.WARNING, logger="lexgen"):
            CodegenDriver(settings).run()

        assert any("Skipping" in record.getMessage() for record in caplog.records)

    def test_missing_input_directory(self, tmp_path):
        settings = GeneratorSettings(input_dir=tmp_path / "nope", output_dir=tmp_path / "out")
        with pytest.raises(ConfigurationError) as exc_info:
            CodegenDriver(settings).run()
        assert exc_info.value.setting == "input_dir"

    def test_unwritable_output_aborts(self, tmp_path, lexicon_dir, write_lexicon, sample_documents):
        write_lexicon(sample_documents["com.example.getThing"])
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        settings = GeneratorSettings(input_dir=lexicon_dir, output_dir=blocker)

        with pytest.raises(OSError):
            CodegenDriver(settings).run()


class TestGeneratedPackage:
    """Import the generated tree and drive the bindings."""

    def run(self, lexicon_dir, import_root):
        settings = GeneratorSettings(
            input_dir=lexicon_dir,
            output_dir=import_root / "lexout",
            package="lexout",
        )
        report = CodegenDriver(settings).run()
        assert report.ok
        importlib.invalidate_caches()

    async def test_query_binding(self, lexicon_dir, import_root, write_lexicon, sample_documents):
        for doc in sample_documents.values():
            write_lexicon(doc)
        self.run(lexicon_dir, import_root)

        get_thing = importlib.import_module("lexout.com.example.get_thing")
        client = RecordingClient()
        response = await get_thing.get_thing(client, get_thing.QueryParams(id="42"))

        request, output_type = client.requests[0]
        assert request.method is XrpcMethod.QUERY
        assert request.nsid == "com.example.getThing"
        assert request.params == {"id": "42"}
        assert output_type is None
        assert response.data is None

    async def test_procedure_binding_with_cross_reference(
        self, lexicon_dir, import_root, write_lexicon, sample_documents
    ):
        for doc in sample_documents.values():
            write_lexicon(doc)
        self.run(lexicon_dir, import_root)

        create_thing = importlib.import_module("lexout.com.example.create_thing")
        defs = importlib.import_module("lexout.com.example.defs")

        thing = defs.Thing(uri="at://did:plc:abc/com.example.post/1", owner="did:plc:abc", tags=["a"])
        client = RecordingClient({"uri": "at://did:plc:abc/com.example.thing/2"})
        response = await create_thing.create_thing(client, create_thing.Input(thing=thing))

        request, output_type = client.requests[0]
        assert request.method is XrpcMethod.PROCEDURE
        assert request.headers["Content-Type"] == "application/json"
        assert request.data == {
            "thing": {
                "uri": "at://did:plc:abc/com.example.post/1",
                "owner": "did:plc:abc",
                "count": 0,
                "tags": ["a"],
            },
            "validate": True,
        }
        assert output_type is create_thing.Output
        assert response.data.uri == "at://did:plc:abc/com.example.thing/2"

    def test_record_and_errors(self, lexicon_dir, import_root, write_lexicon, sample_documents):
        for doc in sample_documents.values():
            write_lexicon(doc)
        self.run(lexicon_dir, import_root)

        post = importlib.import_module("lexout.com.example.post")
        record = post.Main(text="hello", createdAt="2024-01-01T00:00:00Z")
        assert record.created_at == "2024-01-01T00:00:00Z"
        assert record.model_dump(by_alias=True) == {
            "text": "hello",
            "createdAt": "2024-01-01T00:00:00Z",
        }

        create_thing = importlib.import_module("lexout.com.example.create_thing")
        error = create_thing.InvalidThingError("bad thing")
        assert error.error == "InvalidThing"
        assert str(error) == "bad thing"

        package = importlib.import_module("lexout.com.example")
        assert package.__all__ == ["create_thing", "defs", "get_thing", "post"]

    @pytest.mark.parametrize("first", ["lexout.x.y.a", "lexout.x.y.b"])
    def test_documents_that_import_each_other(self, lexicon_dir, import_root, write_lexicon, first):
        """Aliases and models referring across two documents load in either order."""
        write_lexicon(
            lexicon(
                "x.y.a",
                list={"type": "array", "items": {"type": "ref", "ref": "x.y.b#barList"}},
                foo={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "children": {"type": "ref", "ref": "x.y.b#fooList"},
                    },
                },
            )
        )
        write_lexicon(
            lexicon(
                "x.y.b",
                barList={"type": "array", "items": {"type": "ref", "ref": "x.y.a#list"}},
                fooList={"type": "array", "items": {"type": "ref", "ref": "x.y.a#foo"}},
            )
        )
        self.run(lexicon_dir, import_root)

        importlib.import_module(first)
        a = importlib.import_module("lexout.x.y.a")
        b = importlib.import_module("lexout.x.y.b")
        assert hasattr(a, "ListType")
        assert hasattr(b, "BarList")

        foo = a.Foo.model_validate(
            {"name": "root", "children": [{"name": "leaf", "children": []}]}
        )
        assert isinstance(foo.children[0], a.Foo)
        assert foo.children[0].name == "leaf"
