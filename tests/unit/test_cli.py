"""
Unit tests for the command line tools.
"""

import json
import os

import pytest

from schemastash.cli import cache_cli, store_cli, validate_cli
from schemastash.core.checksum import checksum_of


def output_of(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


@pytest.fixture
def fixture_path(test_data_dir):
    def _path(*parts):
        return os.path.join(test_data_dir, *parts)
    return _path


class TestValidateCli:
    """Tests for schemastash-validate"""

    def test_infers_schema_without_options(self, fixture_path, capsys):
        assert validate_cli.run(["--input", fixture_path("example-input.json"), "--title", "Example"]) == 0
        result = output_of(capsys)
        assert result["schema"]["title"] == "Example"
        assert result["schema"]["required"] == ["bar", "foo"]

    def test_valid_input(self, fixture_path, capsys):
        argv = [
            "--input", fixture_path("example-input.json"),
            "--schema", fixture_path("schemas", "my-test-input-schema.json"),
        ]
        assert validate_cli.run(argv) == 0
        assert output_of(capsys)["validation"]["isValid"] is True

    def test_invalid_input(self, fixture_path, tmp_path, capsys):
        data = tmp_path / "bad.json"
        data.write_text('{"foo": "one"}')
        argv = ["--input", str(data), "--schema", fixture_path("schemas", "my-test-input-schema.json")]
        assert validate_cli.run(argv) == 1
        assert output_of(capsys)["status"] == "error"

    def test_transform_and_check_output(self, fixture_path, output_schema, tmp_path, capsys):
        envelope_schema = tmp_path / "envelope.json"
        envelope_schema.write_text(json.dumps({
            "type": "object",
            "properties": {"data": {key: value for key, value in output_schema.items() if key != "$schema"}},
            "required": ["data"],
        }))
        argv = [
            "--input", fixture_path("example-input.json"),
            "--schema", fixture_path("schemas", "my-test-input-schema.json"),
            "--transformer", fixture_path("transformers", "example.j2"),
            "--post-transform-schema", str(envelope_schema),
            "--context", fixture_path("context.yaml"),
        ]
        assert validate_cli.run(argv) == 0
        assert output_of(capsys)["output"] == {"data": {"newBar": 2, "newFoo": "quuxbaz-oh-yeah"}}

    def test_output_fails_post_transform_schema(self, fixture_path, capsys):
        argv = [
            "--input", fixture_path("example-input.json"),
            "--transformer", fixture_path("transformers", "example.jmespath"),
            "--post-transform-schema", fixture_path("schemas", "my-test-output-schema.json"),
            "--context", fixture_path("context.yaml"),
        ]
        # The output is {"data": {...}}, not the bare output schema shape
        assert validate_cli.run(argv) == 2
        assert output_of(capsys)["validation"]["isValid"] is False

    def test_transformer_failure(self, fixture_path, capsys):
        argv = [
            "--input", fixture_path("example-input.json"),
            "--transformer", fixture_path("transformers", "example.j2"),
        ]
        assert validate_cli.run(argv) == 2
        assert "produced no output" in output_of(capsys)["message"]

    def test_missing_input_file(self, tmp_path, capsys):
        assert validate_cli.run(["--input", str(tmp_path / "missing.json")]) == 1
        assert output_of(capsys)["status"] == "error"


class TestStoreCli:
    """Tests for schemastash-store over a document directory"""

    @pytest.fixture
    def store(self, tmp_path, capsys):
        base = ["--backend", "document", "--document-dir", str(tmp_path / "store")]

        def _run(*argv):
            code = store_cli.run(base + list(argv))
            return code, output_of(capsys)
        return _run

    def test_full_round(self, store, fixture_path):
        code, _ = store("put-schema", "--file", fixture_path("schemas", "my-test-input-schema.json"))
        assert code == 0
        code, _ = store("put-schema", "--file", fixture_path("schemas", "my-test-output-schema.json"))
        assert code == 0

        code, result = store(
            "put-transformer", "--name", "example",
            "--file", fixture_path("transformers", "example.json"),
            "--output-schema", "my-test-output-schema",
            "--input-schema", "my-test-input-schema",
        )
        assert code == 0
        assert result["transformer"]["language"] == "mapping"

        code, result = store(
            "tag", "--schema-name", "my-test-input-schema", "--input", fixture_path("example-input.json")
        )
        assert code == 0
        source = result["payload"]["dataChecksum"]
        assert source == checksum_of({"foo": 1, "bar": "baz"})

        code, result = store(
            "transform", "--transformer", "example", "--checksum", source,
            "--context", fixture_path("context.yaml"), "--store",
        )
        assert code == 0
        assert result["payload"]["data"] == {"newBar": 2, "newFoo": "quuxbaz-oh-yeah"}

        code, result = store("get-payload", "--schema-name", "my-test-output-schema")
        assert code == 0
        assert len(result["payloads"]) == 1

        code, result = store("get-schema", "--name", "my-test-input-schema", "--version", "0")
        assert code == 0
        assert result["schema"]["title"] == "my-test-input-schema"

    def test_errors_exit_nonzero(self, store):
        code, result = store("get-payload", "--checksum", checksum_of("missing"))
        assert code == 1
        assert result["status"] == "error"

        code, result = store("lineage", "--checksum", checksum_of("missing"))
        assert code == 1

    def test_unknown_extension(self, store, tmp_path):
        source = tmp_path / "t.xsl"
        source.write_text("<xsl/>")
        code, result = store("put-transformer", "--name", "t", "--file", str(source))
        assert code == 1
        assert "unsupported transformer language" in result["message"]

    def test_no_command(self, capsys):
        assert store_cli.run([]) == 1

    def test_storage_error_reported(self, tmp_path, capsys):
        argv = [
            "--backend", "relational", "--sqlite-path", str(tmp_path / "missing" / "store.db"),
            "get-schema", "--name", "my-test-input-schema",
        ]
        assert store_cli.run(argv) == 1
        result = output_of(capsys)
        assert result["status"] == "error"
        assert "unable to open database file" in result["message"]


class TestCacheCli:
    """Tests for schemastash-cache over a SQLite file"""

    @pytest.fixture
    def cache(self, tmp_path, capsys):
        base = ["--sqlite-path", str(tmp_path / "cache.db")]

        def _run(*argv):
            code = cache_cli.run(base + list(argv))
            return code, output_of(capsys)
        return _run

    def test_canonicalize(self, cache, fixture_path):
        code, result = cache("canonicalize", "--input", fixture_path("example-input.json"), "--sha256")
        assert code == 0
        assert result["canonical"] == '{"bar":"baz","foo":1}'
        assert result["sha256"] == checksum_of({"foo": 1, "bar": "baz"}).split(":", 1)[1]

    def test_canonicalize_into_database(self, cache, fixture_path):
        argv = ("canonicalize", "--input", fixture_path("example-input.json"), "--ensure-in-database")
        code, first = cache(*argv)
        assert code == 0
        assert first["created"] is True
        _, second = cache(*argv)
        assert second["created"] is False
        assert second["id"] == first["id"]

    def test_import_twice(self, cache, fixture_path):
        source = fixture_path("example-input.jsonl")
        code, result = cache("import", "--source", source,
                             "--schema", fixture_path("schemas", "my-test-input-schema.json"))
        assert code == 0
        assert result["written"] == 4
        _, result = cache("import", "--source", source)
        assert result["written"] == 0

    def test_upsert_source(self, cache, tmp_path):
        data = tmp_path / "data.txt"
        data.write_text("v1")
        assert cache("upsert-source", "--source", str(data))[1]["outcome"] == "inserted"
        assert cache("upsert-source", "--source", str(data))[1]["outcome"] == "unchanged"
        data.write_text("v2")
        assert cache("upsert-source", "--source", str(data))[1]["outcome"] == "upserted"

    def test_provision_with_schema_dir(self, tmp_path, capsys):
        schema_dir = tmp_path / "schemas"
        schema_dir.mkdir()
        (schema_dir / "extra.json").write_text(json.dumps({
            "title": "Extra", "type": "object", "properties": {"id": {"type": "integer"}},
        }))
        argv = ["--sqlite-path", str(tmp_path / "c.db"), "--schema-dir", str(schema_dir), "provision"]
        assert cache_cli.run(argv) == 0
        assert "Extra" in output_of(capsys)["created"]

    def test_missing_source(self, cache, tmp_path):
        code, result = cache("import", "--source", str(tmp_path / "missing.jsonl"))
        assert code == 1
        assert result["status"] == "error"

    def test_database_in_missing_directory(self, tmp_path, capsys):
        argv = ["--sqlite-path", str(tmp_path / "missing" / "cache.db"), "provision"]
        assert cache_cli.run(argv) == 1
        assert output_of(capsys)["status"] == "error"

    def test_file_is_not_a_database(self, tmp_path, capsys):
        path = tmp_path / "cache.db"
        path.write_text("not a database " * 100)
        assert cache_cli.run(["--sqlite-path", str(path), "provision"]) == 1
        result = output_of(capsys)
        assert result["status"] == "error"
        assert "not a database" in result["message"]
