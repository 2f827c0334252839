import pytest

from conftest import device, fixed, read_value
from pcm5_aa_fix.devicelist import NATIVE_SELECTED, encode_device_list
import main


def backups(db_path):
    return sorted(db_path.parent.glob(db_path.name + ".backup_*"))


@pytest.mark.parametrize("argv", [
    [],
    ["--list", "--fix"],
    ["--dry-run", "--list"],
    ["--fix", "--force"],
    ["--list", "extra"],
    ["--list", "--db-path"],
])
def test_usage_errors(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main.main(argv)
    assert excinfo.value.code != 0
    assert "usage:" in capsys.readouterr().err


def test_list(persistence_db, mixed_records, capsys):
    db = persistence_db(encode_device_list(mixed_records))
    assert main.main(["--list", "--db-path", str(db)]) == 0
    out = capsys.readouterr().out
    assert "Mode: LIST" in out
    assert "Found 2 device(s)" in out
    assert "Errors encountered: 0" in out


def test_dry_run_leaves_database_alone(persistence_db, mixed_records):
    blob = encode_device_list(mixed_records)
    db = persistence_db(blob)
    assert main.main(["--dry-run", "--db-path", str(db)]) == 0
    assert read_value(db) == blob
    assert backups(db) == []


def test_fix(persistence_db, mixed_records, capsys):
    blob = encode_device_list(mixed_records)
    db = persistence_db(blob)

    assert main.main(["--fix", "--db-path", str(db)]) == 0

    assert read_value(db) == encode_device_list(fixed(mixed_records))
    assert len(backups(db)) == 1
    assert "Fixed 2 device(s)" in capsys.readouterr().out


def test_backup_holds_original_blob(persistence_db, corrupted_records):
    blob = encode_device_list(corrupted_records)
    db = persistence_db(blob)

    assert main.main(["--fix", "--db-path", str(db)]) == 0

    (backup,) = backups(db)
    assert read_value(backup) == blob
    assert read_value(db) == encode_device_list(fixed(corrupted_records))


def test_fix_no_backup(persistence_db, corrupted_records):
    db = persistence_db(encode_device_list(corrupted_records))
    assert main.main(["--fix", "--no-backup", "--db-path", str(db)]) == 0
    assert backups(db) == []
    assert read_value(db) == encode_device_list(fixed(corrupted_records))


def test_no_backup_outside_fix_is_ignored(persistence_db, healthy_blob, capsys):
    db = persistence_db(healthy_blob)
    assert main.main(["--list", "--no-backup", "--db-path", str(db)]) == 0
    assert "only applies to --fix" in capsys.readouterr().out


def test_fix_twice_is_a_no_op(persistence_db, corrupted_records):
    db = persistence_db(encode_device_list(corrupted_records))
    assert main.main(["--fix", "--no-backup", "--db-path", str(db)]) == 0
    repaired = read_value(db)
    assert main.main(["--fix", "--db-path", str(db)]) == 0
    assert read_value(db) == repaired
    assert backups(db) == []


def test_missing_entry_exits_zero(persistence_db, capsys):
    db = persistence_db()
    assert main.main(["--fix", "--db-path", str(db)]) == 0
    assert "No device list found" in capsys.readouterr().out


def test_missing_database(tmp_path, capsys):
    assert main.main(["--list", "--db-path", str(tmp_path / "nope.sqlite")]) == 1
    assert "Database not found" in capsys.readouterr().out


def test_missing_partition(persistence_db):
    db = persistence_db(partition_name="2000")
    assert main.main(["--list", "--db-path", str(db)]) == 1


def test_truncated_blob_exits_non_zero(persistence_db, mixed_records):
    blob = encode_device_list(mixed_records)[:-3]
    db = persistence_db(blob)
    for mode in ("--list", "--dry-run", "--fix"):
        assert main.main([mode, "--db-path", str(db)]) == 1
    assert read_value(db) == blob
    assert backups(db) == []


def test_backup_failure_aborts_fix(persistence_db, corrupted_records, monkeypatch, capsys):
    from pcm5_aa_fix import repairer
    from pcm5_aa_fix.errors import BackupFailed

    def failing_backup(db_path, now=None):
        raise BackupFailed("disk full")

    blob = encode_device_list(corrupted_records)
    db = persistence_db(blob)
    monkeypatch.setattr(repairer, "create_backup", failing_backup)

    assert main.main(["--fix", "--db-path", str(db)]) == 1
    assert read_value(db) == blob
    assert "Aborting for safety" in capsys.readouterr().out


def test_empty_db_path(capsys):
    assert main.main(["--list", "--db-path", ""]) == 1
    assert "must not be empty" in capsys.readouterr().out


def test_device_without_name_end_to_end(persistence_db, capsys):
    records = [device(name=None, state=NATIVE_SELECTED)]
    db = persistence_db(encode_device_list(records))
    assert main.main(["--fix", "--no-backup", "--db-path", str(db)]) == 0
    assert read_value(db) == encode_device_list(fixed(records))
    assert "unknown: NATIVE_SELECTED -> DISCLAIMER_ACCEPTED" in capsys.readouterr().out
