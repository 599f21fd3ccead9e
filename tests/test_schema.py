"""
Tests for the data model and row mapping.
"""
from datetime import datetime

import pytest

from hireboard.schema import (
    Applicant,
    EvaluationProgress,
    RegistrationType,
    StageInfo,
    DEFAULT_STAGES,
    FIXED_STAGE_ID,
    applicant_changes_to_row,
    format_applied_date,
)


def test_evaluation_progress_categories():
    """Completed / in progress / not started follow current vs total"""
    assert EvaluationProgress(2, 2).is_completed
    assert EvaluationProgress(1, 3).is_in_progress
    assert EvaluationProgress(0, 2).is_not_started
    assert not EvaluationProgress(0, 2).is_in_progress
    assert EvaluationProgress(1, 4).ratio == 0.25


def test_evaluation_progress_rejects_bad_counts():
    """total >= 1 and current <= total are enforced"""
    with pytest.raises(ValueError):
        EvaluationProgress(0, 0)
    with pytest.raises(ValueError):
        EvaluationProgress(3, 2)
    with pytest.raises(ValueError):
        EvaluationProgress(-1, 2)


def test_registration_type_from_str():
    assert RegistrationType.from_str("posted") == RegistrationType.POSTED
    assert RegistrationType.from_str("DIRECT") == RegistrationType.DIRECT
    assert RegistrationType.from_str("bogus") == RegistrationType.DIRECT


def test_applicant_row_mapping():
    """Rows use snake_case evaluation columns and plain enum values"""
    applicant = Applicant(
        id="A1",
        name="Kim",
        stage="coding_test",
        registration_type=RegistrationType.POSTED,
        applied_date="2025. 09. 02",
        evaluation_progress=EvaluationProgress(1, 3),
    )
    row = applicant.to_row(position=4)
    assert row["registration_type"] == "posted"
    assert row["evaluation_current"] == 1
    assert row["evaluation_total"] == 3
    assert row["position"] == 4
    assert "position" not in applicant.to_row()

    restored = Applicant.from_row(dict(row, created_at="x", updated_at="y"))
    assert restored == applicant


def test_applicant_to_dict_nests_progress():
    applicant = Applicant(id="A1", name="Kim", stage="hired")
    data = applicant.to_dict()
    assert data["evaluation_progress"] == {"current": 0, "total": 1}
    assert data["registration_type"] == "direct"


def test_changes_to_row():
    row = applicant_changes_to_row({
        "name": "Lee",
        "evaluation_progress": EvaluationProgress(2, 2),
        "registration_type": RegistrationType.POSTED,
    })
    assert row == {
        "name": "Lee",
        "evaluation_current": 2,
        "evaluation_total": 2,
        "registration_type": "posted",
    }


def test_stage_row_mapping():
    stage = StageInfo("custom_1", "Take-home", "#EF4444")
    row = stage.to_row(3)
    assert row == {"id": "custom_1", "title": "Take-home", "color": "#EF4444",
                   "is_fixed": False, "position": 3}
    assert StageInfo.from_row(dict(row, is_fixed=1)).is_fixed


def test_default_stages_have_single_fixed_last():
    fixed = [s for s in DEFAULT_STAGES if s.is_fixed]
    assert [s.id for s in fixed] == [FIXED_STAGE_ID]
    assert DEFAULT_STAGES[-1].id == FIXED_STAGE_ID
    assert len({s.id for s in DEFAULT_STAGES}) == len(DEFAULT_STAGES)


def test_format_applied_date_is_zero_padded():
    assert format_applied_date(datetime(2025, 3, 7)) == "2025. 03. 07"
