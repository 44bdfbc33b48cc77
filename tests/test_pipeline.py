import json
import logging
import zipfile

import pytest
from sqlmodel import Session, select

import hnssec.pipeline
from hnssec.db import get_engine
from hnssec.exceptions import KeyMaterialError, ValidationError
from hnssec.models import DNSSECLog
from hnssec.pipeline import (
    entry_name,
    load_catalogue,
    run,
    run_many,
    validate_options,
    wait_for_backups,
)

EXPECTED_FILES = {
    "README.md",
    "db.example.test",
    "output.conf",
    "records.conf",
    "tls/example.test.crt",
    "tls/example.test.key",
}


def _files(root):
    return {path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()}


def test_single_run(options):
    result = run(options)
    archives = wait_for_backups([result], timeout=60)

    assert result.ok, result.error
    assert result.domain_dir == options.output_dir / "example.test"

    files = _files(result.domain_dir)
    assert EXPECTED_FILES <= files
    assert len([f for f in files if f.startswith("ksk/")]) == 2
    assert len([f for f in files if f.startswith("zsk/")]) == 2

    assert len(archives) == 1
    with zipfile.ZipFile(archives[0]) as zf:
        assert set(zf.namelist()) == files

    with Session(get_engine(options.db_path)) as session:
        rows = session.exec(select(DNSSECLog)).all()
    assert [row.domain for row in rows] == ["example.test"]


def test_missing_host_has_no_side_effects(options, caplog):
    options.host = None

    with caplog.at_level(logging.ERROR):
        result = run(options)

    assert not result.ok
    assert result.backup is None
    assert "Must provide host" in caplog.text
    assert not options.output_dir.exists()
    assert not options.backup_dir.exists()


def test_validate_options_reports_everything_missing(options):
    options.host = None
    options.name = ""

    with pytest.raises(ValidationError) as excinfo:
        validate_options(options)
    assert excinfo.value.code == "missing_option"
    assert excinfo.value.details == {"missing": ["host", "name"]}


def test_validate_options_rejects_bad_host(options):
    options.host = "not-an-ip"

    with pytest.raises(ValidationError) as excinfo:
        validate_options(options)
    assert excinfo.value.code == "invalid_option"


def test_failed_stage_still_backs_up(options, monkeypatch):
    def broken(domain, domain_dir, db_path=None):
        raise KeyMaterialError("keygen_failed", "no entropy")

    monkeypatch.setattr(hnssec.pipeline, "generate_keys", broken)

    result = run(options)
    archives = wait_for_backups([result], timeout=60)

    assert not result.ok
    assert result.error == "no entropy"
    assert _files(result.domain_dir) == {"tls/example.test.crt", "tls/example.test.key"}
    assert len(archives) == 1


def test_batch_continues_past_a_failing_entry(options, monkeypatch, caplog):
    generate_keys = hnssec.pipeline.generate_keys

    def flaky(domain, domain_dir, db_path=None):
        if domain.label == "second":
            raise RuntimeError("boom")
        return generate_keys(domain, domain_dir, db_path=db_path)

    monkeypatch.setattr(hnssec.pipeline, "generate_keys", flaky)
    entries = [{"ascii": "first"}, {"ascii": "second"}, {"ascii": "third"}]

    with caplog.at_level(logging.INFO, logger="hnssec"):
        results = run_many(entries, options)
    archives = wait_for_backups(results, timeout=120)

    assert [r.name for r in results] == ["first", "second", "third"]
    assert [r.ok for r in results] == [True, False, True]
    assert results[1].error == "boom"
    assert (options.output_dir / "third" / "db.third").is_file()
    assert sorted(path.name.split("_backup_")[0] for path in archives) == ["first", "second", "third"]
    assert "3/3 processed…complete" in caplog.text
    assert options.name == "example.test"


def test_entry_name():
    assert entry_name({"ascii": "example", "unicode": "exämple"}) == "example"
    assert entry_name({"unicode": "exämple"}) is None
    assert entry_name("example") == "example"


def test_load_catalogue_json(tmp_path):
    path = tmp_path / "catalogue.json"
    path.write_text(json.dumps([{"ascii": "one"}, {"ascii": "two"}]))

    assert [entry_name(e) for e in load_catalogue(path)] == ["one", "two"]


def test_load_catalogue_yaml(tmp_path):
    path = tmp_path / "catalogue.yaml"
    path.write_text("- ascii: one\n- two\n")

    assert [entry_name(e) for e in load_catalogue(path)] == ["one", "two"]


@pytest.mark.parametrize("content", ['{"ascii": "one"}', "[unclosed"])
def test_load_catalogue_rejects_bad_files(tmp_path, content):
    path = tmp_path / "catalogue.json"
    path.write_text(content)

    with pytest.raises(ValidationError) as excinfo:
        load_catalogue(path)
    assert excinfo.value.code == "bad_catalogue"


def test_load_catalogue_missing_file(tmp_path):
    with pytest.raises(ValidationError):
        load_catalogue(tmp_path / "missing.json")


def test_batch_survives_an_unusable_backup_dir(options, caplog):
    options.backup_dir.parent.mkdir(parents=True, exist_ok=True)
    options.backup_dir.write_text("not a directory")

    results = run_many(["first", "second"], options)

    assert [r.name for r in results] == ["first", "second"]
    assert all(r.ok for r in results)
    assert all(r.backup is None for r in results)
    assert (options.output_dir / "second" / "db.second").is_file()
    assert caplog.text.count("Cannot create backup folder") == 2
