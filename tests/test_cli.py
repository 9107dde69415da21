"""
Tests for the `python -m clef` command line.

The CLI is exercised end-to-end against a temporary SQLite file.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import aiosqlite
import pytest

from clef.__main__ import main, parse_args
from clef.core.db.models import NewWork
from clef.core.db.schema import SCHEMA_VERSION
from clef.core.metadata_db import MetadataDb


def _seed(db_path: Path) -> None:
    async def run() -> None:
        db = MetadataDb(db_path)
        await db.open()
        try:
            await db.ensure_schema()
            await db.add_work(
                NewWork(
                    title="Invention 1",
                    composer="Bach",
                    collection="C",
                    dataset_name="D1",
                    filename="f1.xml",
                    tags=("baroque", "keyboard"),
                )
            )
            await db.add_work(
                NewWork(
                    title="Nocturne",
                    composer="Chopin",
                    collection="C",
                    dataset_name="D1",
                    filename="f2.xml",
                )
            )
        finally:
            await db.close()

    asyncio.run(run())


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.strip()]


class TestParseArgs:
    def test_lookup_arguments(self) -> None:
        args = parse_args(["--db", "x.sqlite3", "lookup", "D1,D2", "f1.xml"])
        assert args.command == "lookup"
        assert args.db == Path("x.sqlite3")
        assert args.datasets == "D1,D2"
        assert args.filenames == "f1.xml"
        assert args.include_untagged is None

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestCommands:
    def test_init_creates_schema(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        db_path = tmp_path / "clef.sqlite3"

        assert main(["--db", str(db_path), "init"]) == 0
        assert db_path.exists()

        assert main(["--db", str(db_path), "stats"]) == 0
        counts = json.loads(capsys.readouterr().out)
        assert counts["works"] == 0
        assert counts["composers"] == 0

    def test_lookup_prints_rows(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        db_path = tmp_path / "clef.sqlite3"
        _seed(db_path)

        assert main(["--db", str(db_path), "lookup", "D1", "f1.xml,f2.xml"]) == 0

        rows = _json_lines(capsys.readouterr().out)
        assert len(rows) == 2
        assert {r["tag"] for r in rows} == {"baroque", "keyboard"}
        assert all(r["composer_name"] == "Bach" for r in rows)
        assert set(rows[0]) == {
            "collection",
            "dataset_name",
            "filename",
            "title",
            "catalog",
            "catalog_number",
            "pcn",
            "composer_name",
            "born",
            "died",
            "work_type",
            "era",
            "tag",
        }

    def test_lookup_include_untagged(
        self, tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        db_path = tmp_path / "clef.sqlite3"
        _seed(db_path)

        assert main(["--db", str(db_path), "lookup", "D1", "f2.xml", "--include-untagged"]) == 0

        rows = _json_lines(capsys.readouterr().out)
        assert [(r["title"], r["tag"]) for r in rows] == [("Nocturne", None)]

    def test_lookup_uses_config_default(
        self, tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        db_path = tmp_path / "clef.sqlite3"
        _seed(db_path)
        config_path = tmp_path / "clef.toml"
        config_path.write_text(
            f'[database]\npath = "{db_path.as_posix()}"\n\n[lookup]\ninclude_untagged = true\n',
            encoding="utf-8",
        )

        assert main(["--config", str(config_path), "lookup", "D1", "f2.xml"]) == 0

        rows = _json_lines(capsys.readouterr().out)
        assert len(rows) == 1

    def test_invalid_batch_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        db_path = tmp_path / "clef.sqlite3"
        _seed(db_path)

        assert main(["--db", str(db_path), "lookup", "D1", "x" * 501]) == 2
        assert capsys.readouterr().out == ""

    def test_reset(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        db_path = tmp_path / "clef.sqlite3"
        _seed(db_path)

        assert main(["--db", str(db_path), "init", "--reset"]) == 0
        assert main(["--db", str(db_path), "stats"]) == 0

        counts = json.loads(capsys.readouterr().out)
        assert all(c == 0 for c in counts.values())

    def test_missing_config_file(self, tmp_path: Path) -> None:
        assert main(["--config", str(tmp_path / "absent.toml"), "stats"]) == 1

    def test_newer_schema_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """A database from a newer release is reported, not dumped as a traceback."""
        db_path = tmp_path / "future.sqlite3"

        async def bump_version() -> None:
            async with aiosqlite.connect(db_path) as conn:
                await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1};")
                await conn.commit()

        asyncio.run(bump_version())

        assert main(["--db", str(db_path), "init"]) == 1
        assert main(["--db", str(db_path), "lookup", "D1", "f1.xml"]) == 1
        assert capsys.readouterr().out == ""
