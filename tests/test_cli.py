from __future__ import annotations

import json
import os
from pathlib import Path

from askmuni.cli import main, normalize_pdf_name, rename_pdfs


def test_year_command(capsys):
    assert main(["year", "Budget de l'année 2024"]) == 0
    assert json.loads(capsys.readouterr().out) == {"query": "Budget de l'année 2024", "queryYear": 2024}


def _write_chunks(tmp_path: Path) -> Path:
    path = tmp_path / "chunks.json"
    path.write_text(
        json.dumps(
            {
                "chunks": [
                    {"text": "Projets 2020", "score": 0.82, "filename": "2020.pdf", "year": 2020},
                    {"text": "Projets 2025", "score": 0.78, "filename": "2025.pdf", "page": 1, "year": 2025},
                    {"text": "", "score": 0.99},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


def test_rank_command(tmp_path, capsys):
    path = _write_chunks(tmp_path)
    assert main(["rank", "--chunks", str(path), "--query", "Projets pour 2025"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["searchMetadata"]["originalCount"] == 2
    assert report["searchMetadata"]["filteredCount"] == 1
    [chunk] = report["chunks"]
    assert chunk["filename"] == "2025.pdf"
    assert chunk["temporalScore"] == 1.0
    assert chunk["originalScore"] == 0.78


def test_rank_command_without_filter(tmp_path, capsys):
    path = _write_chunks(tmp_path)
    assert main(["rank", "--chunks", str(path), "--query", "Projets pour 2025", "--no-filter", "--limit", "1"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["searchMetadata"]["temporalFilterApplied"] is False
    assert [chunk["filename"] for chunk in report["chunks"]] == ["2025.pdf"]


def test_rank_command_rejects_bad_weight(tmp_path, capsys):
    path = _write_chunks(tmp_path)
    assert main(["rank", "--chunks", str(path), "--query", "x", "--temporal-weight", "2"]) == 2
    assert "Invalid temporal configuration" in capsys.readouterr().err


def test_normalize_pdf_name():
    assert normalize_pdf_name("Compte Rendu Été 2024.PDF") == "compte-rendu-ete-2024.pdf"
    assert normalize_pdf_name("Séance  du   conseil.pdf") == "seance-du-conseil.pdf"


def test_rename_pdfs(tmp_path, capsys):
    year_dir = tmp_path / "2024"
    year_dir.mkdir()
    (year_dir / "Séance Mars.pdf").write_bytes(b"%PDF")
    (year_dir / "deja-propre.pdf").write_bytes(b"%PDF")

    assert main(["rename-pdfs", str(tmp_path), "--dry-run"]) == 0
    assert "Would rename" in capsys.readouterr().out
    assert (year_dir / "Séance Mars.pdf").exists()

    renamed = rename_pdfs(tmp_path)
    assert [item.target.name for item in renamed] == ["seance-mars.pdf"]
    assert (year_dir / "seance-mars.pdf").exists()
    assert not (year_dir / "Séance Mars.pdf").exists()


def test_rename_pdfs_missing_directory(tmp_path):
    assert main(["rename-pdfs", str(tmp_path / "absent")]) == 2


def test_rank_command_limit_zero_prints_no_chunks(tmp_path, capsys):
    path = _write_chunks(tmp_path)
    assert main(["rank", "--chunks", str(path), "--query", "Projets", "--limit", "0"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["chunks"] == []
    assert report["searchMetadata"]["originalCount"] == 2


def test_rename_pdfs_accepts_target_that_is_the_same_file(tmp_path):
    source = tmp_path / "Conseil.pdf"
    source.write_bytes(b"%PDF")
    # A second name for the same file, as a case-insensitive filesystem reports it.
    os.link(source, tmp_path / "conseil.pdf")

    renamed = rename_pdfs(tmp_path)

    assert [(item.source.name, item.target.name) for item in renamed] == [("Conseil.pdf", "conseil.pdf")]
    assert (tmp_path / "conseil.pdf").read_bytes() == b"%PDF"


def test_rename_pdfs_skips_real_collision(tmp_path, capsys):
    (tmp_path / "Conseil.pdf").write_bytes(b"%PDF-a")
    (tmp_path / "conseil.pdf").write_bytes(b"%PDF-b")

    assert rename_pdfs(tmp_path) == []
    assert "already exists" in capsys.readouterr().err
    assert (tmp_path / "Conseil.pdf").read_bytes() == b"%PDF-a"
