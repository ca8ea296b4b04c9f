import pytest

from void_survey.exceptions import DraftLoadError, ItemNotFoundError, SurveyImportError, SurveyValidationError
from void_survey.persistence import SurveyState
from void_survey.session import FORM, START, SurveySession


def test_start_requires_name_and_address(session):
    with pytest.raises(SurveyValidationError):
        session.start("Sam", "   ")
    assert session.screen == START
    assert not session.writer.pending


def test_start_seeds_store_and_schedules_save(session):
    session.start(" Sam ", "1 High St")
    assert session.active
    assert session.record.surveyor_name == "Sam"
    assert [i.code for i in session.store.items("kitchen")] == ["KIT001", "KIT002"]
    assert len(session.store.items("lorry clearance")) == 1
    assert len(session.store.items("contractor work")) == 1
    assert session.writer.pending

    session.flush()
    assert session.drafts.exists()


def test_changes_are_not_saved_before_the_form_starts(session):
    session.add_item("kitchen", {"code": "X"})
    assert not session.writer.pending


def test_item_operations_update_totals(session):
    session.start("Sam", "1 High St")
    added = session.add_from_catalog("kitchen", "PLA001")
    assert added.code == "PLA001"
    assert session.add_from_catalog("kitchen", "NOPE") is None
    assert session.add_from_catalog("contractor work", "PLA001") is None

    session.edit_item("kitchen", added.id, {"quantity": "2", "recharge": True})
    totals = session.totals()
    assert (totals.void_cost, totals.recharge_cost) == ("44.00", "44.00")
    assert [l.code for l in session.recharge_lines()] == ["PLA001"]

    session.delete_item("kitchen", added.id)
    assert session.totals().void_cost == "0.00"

    session.update_item("kitchen", 0, {"code": "KIT001", "smv": 60, "cost": 95, "quantity": "1"})
    assert session.totals().void_cost == "95.00"
    session.remove_item("kitchen", 0)
    assert [i.code for i in session.store.items("kitchen")] == ["KIT002"]

    with pytest.raises(ItemNotFoundError):
        session.edit_item("kitchen", "missing", {"quantity": "1"})


def test_fields_and_notes(session):
    session.start("Sam", "1 High St")
    session.set_field("void_rating", "Red")
    session.set_field("mwr_required", True)
    session.set_note("loft_checked", False)
    assert session.record.void_rating == "Red"
    assert session.record.mwr_required is True
    assert session.record.notes.loft_checked is False

    with pytest.raises(SurveyValidationError):
        session.set_field("void_rating", "Purple")
    with pytest.raises(SurveyValidationError):
        session.set_field("nonsense", "x")
    with pytest.raises(SurveyValidationError):
        session.set_note("nonsense", "x")
    assert session.record.void_rating == "Red"


def test_resume_is_offered_once(catalog, settings, drafts, session):
    session.start("Sam", "1 High St")
    session.set_field("overall_comments", "Damp in bedroom 1")
    session.flush()

    later = SurveySession(catalog, settings, drafts)
    assert later.should_offer_resume() is True
    assert later.should_offer_resume() is False
    assert later.resume() is True
    assert later.screen == FORM
    assert later.record.overall_comments == "Damp in bedroom 1"
    assert [i.id for i in later.store.items("kitchen")] == [i.id for i in session.store.items("kitchen")]


def test_resume_rejects_invalid_items(catalog, settings, drafts):
    drafts.save(SurveyState(show_form=True, sections={"kitchen": [{"code": "KIT001", "recharge": None}]}))

    later = SurveySession(catalog, settings, drafts)
    with pytest.raises(DraftLoadError):
        later.resume()
    assert later.screen == START
    assert later.store.items("kitchen") == []
    assert drafts.exists()


def test_discard_draft(catalog, settings, drafts, session):
    session.start("Sam", "1 High St")
    session.flush()

    later = SurveySession(catalog, settings, drafts)
    later.discard_draft()
    assert not drafts.exists()
    assert later.screen == START
    assert later.should_offer_resume() is False


def test_new_survey_drops_pending_save(session):
    session.start("Sam", "1 High St")
    session.new_survey()
    assert session.screen == START
    assert session.record.surveyor_name == ""
    assert not session.writer.pending


def test_exports_use_address_in_filename(session):
    session.start("Sam", "12 Acacia Road")
    name, data = session.export_xlsx()
    assert name == "Empty_Homes_Survey_12_Acacia_Road.xlsx"
    assert data[:2] == b"PK"
    assert session.export_pdf()[0].endswith(".pdf")
    assert session.export_bundle()[0].endswith(".zip")
    assert session.submission_payload()["property_address"] == "12 Acacia Road"


def test_import_into_fresh_session_opens_form(catalog, settings, session):
    session.start("Sam", "12 Acacia Road")
    kit = session.store.items("kitchen")[0]
    session.edit_item("kitchen", kit.id, {"quantity": "3"})
    _, data = session.export_xlsx()

    other = SurveySession(catalog, settings)
    report = other.import_xlsx(data)
    assert other.screen == FORM
    assert other.record.property_address == "12 Acacia Road"
    assert other.store.items("kitchen")[0].quantity == "3"
    assert report.matched == 1


def test_import_failure_leaves_session_untouched(session):
    session.start("Sam", "1 High St")
    before = session.store.to_dict()
    with pytest.raises(SurveyImportError):
        session.import_xlsx(b"nope")
    assert session.store.to_dict() == before
    assert session.record.surveyor_name == "Sam"
