"""Tests for the grade edit buffer and save validation."""

import math

import pytest

from gradedesk.errors import (
    IncompleteGradingError,
    NotSubmittedError,
    ScoreRangeError,
    UnknownQuestionError,
)
from gradedesk.grading.editor import GradeEditor, GradeEntry, GradingState, coerce_score


@pytest.fixture
def editor(exam, make_submission):
    """Editor over an ungraded, submitted submission."""
    return GradeEditor(make_submission(exam))


def test_coerce_score_handles_user_input():
    """Test turning raw input into scores."""
    assert coerce_score(7) == 7.0
    assert coerce_score("8.5") == 8.5
    assert coerce_score(" 3 ") == 3.0
    assert coerce_score("") == 0.0
    assert coerce_score("eight") == 0.0
    assert coerce_score(None) == 0.0


@pytest.mark.parametrize("value", [-1, "-0.5", math.inf, "nan"])
def test_coerce_score_rejects_negative_and_non_finite(value):
    """Test that negative and non-finite scores raise."""
    with pytest.raises(ScoreRangeError):
        coerce_score(value)


def test_state_transitions(exam, make_submission):
    """Test moving from submitted through partially graded to saved."""
    editor = GradeEditor(make_submission(exam))
    assert editor.state == GradingState.SUBMITTED

    editor.set_score(1, 8)
    assert editor.state == GradingState.PARTIALLY_GRADED
    assert editor.missing() == [2]
    assert not editor.can_save()

    editor.set_score(2, 10)
    assert editor.state == GradingState.READY_TO_SAVE
    assert editor.running_total == 18

    editor.commit()
    assert editor.state == GradingState.SAVED


def test_unsubmitted_submission_cannot_be_edited(exam, make_submission):
    """Test that a submission that was never turned in is read-only."""
    editor = GradeEditor(make_submission(exam, submitted=False))

    assert editor.state == GradingState.UNSUBMITTED
    assert not editor.can_save()
    with pytest.raises(NotSubmittedError):
        editor.set_score(1, 5)
    with pytest.raises(NotSubmittedError):
        editor.commit()


def test_graded_submission_starts_saved_with_existing_scores(exam, make_submission):
    """Test that an already graded submission pre-fills the buffer."""
    editor = GradeEditor(make_submission(exam, scores=[6, 7]))

    assert editor.state == GradingState.SAVED
    assert editor.edits[1].received_weight == 6
    assert editor.edits[2].feedback == "Looks good"

    editor.set_score(1, 9)
    assert editor.state == GradingState.READY_TO_SAVE


def test_non_numeric_score_becomes_zero(editor):
    """Test that typing garbage records a zero."""
    entry = editor.set_score(1, "abc")
    assert entry.received_weight == 0.0
    assert editor.missing() == [2]


def test_negative_score_is_rejected_and_buffer_unchanged(editor):
    """Test that a negative score raises and leaves the buffer alone."""
    editor.set_score(1, 4)
    with pytest.raises(ScoreRangeError):
        editor.set_score(1, -2)
    assert editor.edits[1].received_weight == 4


def test_unknown_question_is_rejected(editor):
    """Test that editing a question outside the submission raises."""
    with pytest.raises(UnknownQuestionError, match="not part of this submission"):
        editor.set_score(42, 5)
    with pytest.raises(KeyError):
        editor.set_feedback(42, "nope")


def test_commit_with_missing_scores_changes_nothing(editor):
    """Test that an incomplete save fails without touching the submission."""
    editor.set_score(1, 8)
    editor.set_feedback(1, "Good start")

    with pytest.raises(IncompleteGradingError) as exc_info:
        editor.commit()

    assert exc_info.value.missing == [2]
    assert "2" in str(exc_info.value)
    assert not editor.submission.is_graded
    assert editor.submission.answer_for(1).received_weight is None
    assert editor.edits[1].received_weight == 8
    assert editor.state == GradingState.PARTIALLY_GRADED


def test_cleared_score_counts_as_missing(exam, make_submission):
    """Test that clearing a score makes the submission incomplete again."""
    editor = GradeEditor(make_submission(exam))
    editor.set_score(1, 5)
    editor.set_score(2, 5)
    editor.clear_score(2)

    assert editor.missing() == [2]
    assert editor.state == GradingState.PARTIALLY_GRADED


def test_over_max_is_flagged_and_rejected_by_default(editor):
    """Test that scores above the weight block saving under the reject policy."""
    editor.set_score(1, 12)
    editor.set_score(2, 10)

    assert editor.over_max() == [1]
    with pytest.raises(ScoreRangeError) as exc_info:
        editor.commit()
    assert exc_info.value.question_ids == [1]
    assert not editor.submission.is_graded


def test_over_max_is_clamped_under_clamp_policy(exam, make_submission):
    """Test that the clamp policy caps scores at the question weight."""
    editor = GradeEditor(make_submission(exam), over_max_policy="clamp")
    editor.set_score(1, 12)
    editor.set_score(2, 9)

    payload = editor.grades_payload()
    assert payload[0]["score"] == 10
    assert payload[1]["score"] == 9

    updated = editor.commit()
    assert updated.answer_for(1).received_weight == 10


def test_from_config_reads_policy(exam, make_submission):
    """Test that the over-max policy comes from configuration."""
    submission = make_submission(exam)
    assert GradeEditor.from_config(submission, {}).over_max_policy == "reject"

    configs = {"grading": {"over_max_policy": "clamp"}}
    assert GradeEditor.from_config(submission, configs).over_max_policy == "clamp"


def test_unknown_policy_is_rejected(exam, make_submission):
    """Test that an unknown over-max policy raises."""
    with pytest.raises(ValueError, match="over-max policy"):
        GradeEditor(make_submission(exam), over_max_policy="ignore")


def test_commit_marks_submission_graded(editor):
    """Test that commit applies scores and feedback and reseeds the buffer."""
    editor.set_score(1, "7.5")
    editor.set_score(2, 6)
    editor.set_feedback(2, "Needs an example")
    editor.overall_feedback = "Solid work"

    updated = editor.commit()

    assert updated.is_graded
    assert updated.overall_feedback == "Solid work"
    assert updated.answer_for(1).received_weight == 7.5
    assert updated.answer_for(2).feedback == "Needs an example"
    assert editor.submission is updated
    assert editor.edits[1].received_weight == 7.5
    assert editor.edits[2].feedback == "Needs an example"


def test_grades_payload_shape(editor):
    """Test the per-question payload sent to the backend."""
    editor.set_score(1, 3)
    editor.set_score(2, 4)
    editor.set_feedback(1, "Short")

    assert editor.grades_payload() == [
        {"question_id": 1, "score": 3.0, "feedback": "Short"},
        {"question_id": 2, "score": 4.0, "feedback": ""},
    ]


def test_apply_is_all_or_nothing(editor):
    """Test that a batch with one bad entry applies nothing."""
    editor.set_score(1, 2)

    with pytest.raises(UnknownQuestionError):
        editor.apply({
            1: GradeEntry(received_weight=9, feedback="Great"),
            7: GradeEntry(received_weight=1),
        })

    assert editor.edits[1].received_weight == 2
    assert 2 not in editor.edits


def test_discard_drops_pending_edits(editor):
    """Test that discarding empties the buffer."""
    editor.set_score(1, 5)
    editor.overall_feedback = "Draft"
    editor.discard()

    assert editor.edits == {}
    assert editor.overall_feedback == ""
    assert editor.state == GradingState.SUBMITTED


def test_edit_after_commit_can_be_saved_again(exam, make_submission):
    """Test that correcting one score after a commit behaves like a reopened submission."""
    editor = GradeEditor(make_submission(exam))
    editor.set_score(1, 8)
    editor.set_score(2, 10)
    committed = editor.commit()

    editor.set_score(1, 9)
    reopened = GradeEditor(committed)
    reopened.set_score(1, 9)

    for current in (editor, reopened):
        assert current.state == GradingState.READY_TO_SAVE
        assert current.missing() == []
        assert current.can_save()
    assert editor.commit().answer_for(1).received_weight == 9
    assert editor.submission.answer_for(2).received_weight == 10


def test_discard_after_commit_restores_saved_scores(exam, make_submission):
    """Test that discarding a correction returns to the committed scores."""
    editor = GradeEditor(make_submission(exam))
    editor.set_score(1, 8)
    editor.set_score(2, 10)
    editor.commit()
    editor.set_score(1, 2)

    editor.discard()

    assert editor.state == GradingState.SAVED
    assert editor.edits[1].received_weight == 8
