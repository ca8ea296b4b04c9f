import json

import pytest
from typer.testing import CliRunner

from void_survey.cli import app
from void_survey.persistence import DraftStore


runner = CliRunner()


@pytest.fixture
def draft_file(tmp_path, session):
    session.start("Sam", "12 Acacia Road")
    kit = session.store.items("kitchen")[0]
    session.edit_item("kitchen", kit.id, {"quantity": "2", "recharge": True, "comment": "broken door"})
    session.writer.cancel()
    path = tmp_path / "survey.json"
    DraftStore(tmp_path, key="survey").save(session.snapshot())
    return path


def test_totals_json(draft_file):
    result = runner.invoke(app, ["totals", str(draft_file), "--json"])
    assert result.exit_code == 0, result.output
    totals = json.loads(result.stdout)
    assert totals["void_cost"] == "190.00"
    assert totals["recharge_cost"] == "190.00"


def test_totals_text(draft_file):
    result = runner.invoke(app, ["totals", str(draft_file)])
    assert result.exit_code == 0
    assert "Void cost:     £190.00" in result.stdout


def test_recharge(draft_file):
    result = runner.invoke(app, ["recharge", str(draft_file)])
    assert result.exit_code == 0
    assert "Kitchen: KIT001 Renew kitchen base unit 600mm £190.00 (broken door)" in result.stdout


def test_missing_source_exits_2(tmp_path):
    result = runner.invoke(app, ["totals", str(tmp_path / "nope.json")])
    assert result.exit_code == 2


def test_export_then_import(draft_file, tmp_path):
    out = tmp_path / "out"
    result = runner.invoke(app, ["export", str(draft_file), "--out", str(out)])
    assert result.exit_code == 0, result.output
    workbook = out / "Empty_Homes_Survey_12_Acacia_Road.xlsx"
    assert workbook.exists()
    assert (out / "Empty_Homes_Survey_12_Acacia_Road.pdf").exists()
    assert (out / "Empty_Homes_Survey_12_Acacia_Road.zip").exists()

    draft = tmp_path / "rebuilt.json"
    result = runner.invoke(app, ["import-survey", str(workbook), "--draft", str(draft)])
    assert result.exit_code == 0, result.output
    assert draft.exists()

    state = DraftStore(tmp_path, key="rebuilt").load()
    assert state.show_form is True
    assert state.record.property_address == "12 Acacia Road"


def test_export_without_bundle(draft_file, tmp_path):
    out = tmp_path / "plain"
    result = runner.invoke(app, ["export", str(draft_file), "--out", str(out), "--no-bundle"])
    assert result.exit_code == 0
    assert sorted(p.suffix for p in out.iterdir()) == [".pdf", ".xlsx"]


def test_import_rejects_bad_workbook(tmp_path):
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not a workbook")
    result = runner.invoke(app, ["import-survey", str(bad), "--draft", str(tmp_path / "d.json")])
    assert result.exit_code == 2
    assert not (tmp_path / "d.json").exists()


def test_build_catalog(tmp_path):
    sheet = tmp_path / "prices.csv"
    sheet.write_text(
        "Schedule of rates 2024,,,,,\n"
        "Section,Code,Description,UOM,SMV,Cost\n"
        "Kitchen,KIT001,Renew base unit,NR,60,95.00\n"
        "Garage,GAR001,Renew garage door,NR,180,\"1,250.00\"\n"
        ",,,,,\n",
        encoding="utf-8",
    )
    out = tmp_path / "sors.json"
    result = runner.invoke(app, ["build-catalog", str(sheet), "--out", str(out)])
    assert result.exit_code == 0, result.output
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["kitchen"] == [{"code": "KIT001", "description": "Renew base unit", "uom": "NR", "smv": 60.0, "cost": 95.0}]
    assert doc["searchable"][0]["code"] == "GAR001"
    assert doc["searchable"][0]["cost"] == 1250.0
    assert doc["contractor work"] == []


def test_export_address_with_slash(tmp_path, session):
    session.start("Sam", "Flat 1/2 High St")
    session.writer.cancel()
    DraftStore(tmp_path, key="flat").save(session.snapshot())

    out = tmp_path / "out"
    result = runner.invoke(app, ["export", str(tmp_path / "flat.json"), "--out", str(out), "--no-bundle"])
    assert result.exit_code == 0, result.output
    assert (out / "Empty_Homes_Survey_Flat_1-2_High_St.xlsx").exists()
    assert (out / "Empty_Homes_Survey_Flat_1-2_High_St.pdf").exists()


def test_corrupt_draft_exits_2(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    result = runner.invoke(app, ["totals", str(bad)])
    assert result.exit_code == 2
