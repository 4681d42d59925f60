import json

import pytest
import pytest_asyncio

from coursecatalog.models.orm import PracticeExam
from coursecatalog.services.catalog_export import export_catalog, snapshot_output_path
from coursecatalog.services.catalog_import import CatalogImporter


@pytest_asyncio.fixture
async def imported(session_factory, test_settings, snapshot_data, write_snapshot):
    write_snapshot(snapshot_data)
    result = await CatalogImporter(session_factory=session_factory, settings=test_settings).run()
    assert result.success, result.errors
    return result


def test_output_path_is_first_candidate_with_existing_directory(tmp_path):
    missing = tmp_path / "server" / "catalogSnapshot.json"
    present = tmp_path / "catalogSnapshot.json"
    assert snapshot_output_path([missing, present]) == present
    (tmp_path / "server").mkdir()
    assert snapshot_output_path([missing, present]) == missing


@pytest.mark.asyncio
async def test_final_exam_flags_are_fixed_before_export(imported, session_factory, tmp_path):
    out = tmp_path / "export.json"

    result = await export_catalog(session_factory, ["c1", "c2"], ["bd1"], paths=[out])

    assert result.success, result.error
    assert result.final_exams_fixed == 2
    async with session_factory() as session:
        final = await session.get(PracticeExam, "e3")
    assert final.is_final_exam is True
    assert final.exam_form == "A"
    assert any('Pre-licensing course "FREC I Pre-Licensing"' in w and "Form A" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_final_exam_fix_ups_stay_inside_exported_courses(imported, session_factory, tmp_path):
    result = await export_catalog(session_factory, ["c1"], [], paths=[tmp_path / "export.json"])

    assert result.success, result.error
    assert result.final_exams_fixed == 0
    async with session_factory() as session:
        untouched = await session.get(PracticeExam, "e3")
    assert not untouched.is_final_exam
    assert untouched.exam_form is None


@pytest.mark.asyncio
async def test_final_exam_without_form_in_title_warns(imported, session_factory, tmp_path):
    async with session_factory() as session:
        session.add(PracticeExam(id="e4", course_id="c2", title="Final Exam"))
        await session.commit()

    result = await export_catalog(session_factory, ["c2"], [], paths=[tmp_path / "export.json"])

    assert result.success
    assert 'Final exam "Final Exam" is missing Form A/B designation' in result.warnings


@pytest.mark.asyncio
async def test_export_writes_scoped_snapshot(imported, session_factory, tmp_path):
    out = tmp_path / "export.json"

    result = await export_catalog(session_factory, ["c2"], ["bd1"], paths=[out])

    body = json.loads(out.read_text(encoding="utf-8"))
    assert result.output_path == str(out)
    assert body["version"] == "1.0.0"
    assert body["exportedAt"].endswith("Z")
    assert [c["id"] for c in body["courses"]] == ["c2"]
    assert [u["id"] for u in body["units"]] == ["u5"]
    assert [l["id"] for l in body["lessons"]] == ["l3"]
    assert {"bundleId": "bd1", "courseId": "c1", "sequence": 1} == {
        k: v for k, v in body["bundleCourses"][0].items() if k != "createdAt"
    }
    assert result.exported["courses"] == 1
    assert "requirementCycleType" in body["courses"][0]


@pytest.mark.asyncio
async def test_export_then_import_keeps_row_counts(imported, session_factory, test_settings, snapshot_path, row_counts):
    before = await row_counts()

    exported = await export_catalog(session_factory, ["c1", "c2"], ["bd1"], paths=[snapshot_path])
    assert exported.success
    reimported = await CatalogImporter(session_factory=session_factory, settings=test_settings).run()

    assert reimported.success, reimported.errors
    assert reimported.reconciliation.banks_created == 0
    assert await row_counts() == before


@pytest.mark.asyncio
async def test_export_failure_is_reported_not_raised(session_factory, tmp_path):
    target = tmp_path / "is-a-directory"
    target.mkdir()

    result = await export_catalog(session_factory, ["c1"], [], paths=[target])

    assert not result.success
    assert result.error
