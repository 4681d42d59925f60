from coursecatalog.services.validation import validate


def test_valid_snapshot_passes_and_is_typed(snapshot_data):
    result = validate(snapshot_data)

    assert result.ok
    assert result.errors == []
    assert [c.id for c in result.snapshot.courses] == ["c1", "c2"]
    assert result.snapshot.bank_questions[0].options == '["A", "B"]'
    assert result.snapshot.bundle_courses[1].sequence == 2


def test_missing_array_is_an_error(snapshot_data):
    del snapshot_data["bundleCourses"]
    snapshot_data["lessons"] = {"not": "a list"}

    result = validate(snapshot_data)

    assert not result.ok
    assert "Missing or invalid array: bundleCourses" in result.errors
    assert "Missing or invalid array: lessons" in result.errors
    assert result.snapshot is None


def test_every_broken_reference_is_reported(snapshot_data):
    snapshot_data["units"][0]["courseId"] = "nope"
    snapshot_data["lessons"][1]["unitId"] = "ghost-unit"
    snapshot_data["bankQuestions"][0]["bankId"] = "ghost-bank"
    snapshot_data["examQuestions"][0]["examId"] = "ghost-exam"
    snapshot_data["bundleCourses"][0]["courseId"] = "ghost-course"

    result = validate(snapshot_data)

    assert not result.ok
    assert 'Unit "Hour 1: Ethics" references non-existent course: nope' in result.errors
    assert 'Lesson "Escrow accounts" references non-existent unit: ghost-unit' in result.errors
    assert "Bank question bq1 references non-existent bank: ghost-bank" in result.errors
    assert "Exam question eq1 references non-existent exam: ghost-exam" in result.errors
    assert "Bundle course references non-existent course: ghost-course" in result.errors


def test_dangling_optional_course_links_only_warn(snapshot_data):
    snapshot_data["questionBanks"][0]["courseId"] = "retired-course"
    snapshot_data["practiceExams"][0]["courseId"] = "retired-course"

    result = validate(snapshot_data)

    assert result.ok
    assert any("Question bank" in w and "retired-course" in w for w in result.warnings)
    assert any("Practice exam" in w and "retired-course" in w for w in result.warnings)


def test_schema_errors_name_entity_index_and_field(snapshot_data):
    del snapshot_data["courses"][0]["price"]
    snapshot_data["units"][1]["unitNumber"] = "two"

    result = validate(snapshot_data)

    assert not result.ok
    assert any(e.startswith("Course #0 (c1): price:") for e in result.errors)
    assert any(e.startswith("Unit #1 (u2): unitNumber:") for e in result.errors)


def test_unknown_fields_warn_once_per_entity(snapshot_data):
    snapshot_data["lessons"][0]["legacyColor"] = "blue"
    snapshot_data["lessons"][1]["legacyColor"] = "red"

    result = validate(snapshot_data)

    assert result.ok
    unknown = [w for w in result.warnings if "unknown fields" in w]
    assert unknown == ["Lesson records carry unknown fields (ignored): legacyColor"]


def test_bundle_course_surrogate_id_is_accepted(snapshot_data):
    snapshot_data["bundleCourses"][0]["id"] = "bc-1"

    result = validate(snapshot_data)

    assert result.ok
    assert not any("unknown fields" in w for w in result.warnings)
