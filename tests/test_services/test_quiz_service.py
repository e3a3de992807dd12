import copy
import uuid
from datetime import date, datetime, timezone

import pytest

from tutorhub.domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tutorhub.domain.models.api_models import QuestionPatch
from tutorhub.domain.models.db_models import Question
from tutorhub.services import quiz_service

QUIZ_ID = str(uuid.uuid4())
Q1 = str(uuid.uuid4())
Q2 = str(uuid.uuid4())


def stored_quiz(owner="tutor-1", version=3, **overrides):
    doc = {
        "_id": QUIZ_ID,
        "title": "Fractions",
        "subject": "Math",
        "class_grade": "5th Grade",
        "description": "",
        "due_date": None,
        "questions": [
            {"_id": Q1, "question": "1/2 + 1/2?", "options": ["a", "b"], "correct_answer": "a",
             "type": "Multiple Choice"},
            {"_id": Q2, "question": "1/4 * 2?", "options": ["c", "d"], "correct_answer": "c",
             "type": "Multiple Choice"},
        ],
        "created_by": owner,
        "version": version,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    doc.update(overrides)
    return doc


def base_payload(questions=None, **extra):
    payload = {"title": "Fractions", "subject": "Math", "class_grade": "5th Grade"}
    if questions is not None:
        payload["questions"] = questions
    payload.update(extra)
    return payload


@pytest.fixture
def quiz_db(mock_db):
    mock_db.quizzes.find_one.return_value = stored_quiz()
    mock_db.quizzes.replace_one.return_value.matched_count = 1
    return mock_db


def saved_doc(mock_db):
    filter_doc, replacement = mock_db.quizzes.replace_one.call_args[0]
    return filter_doc, replacement


class TestReconcileQuestions:
    """The pure merge step, independent of storage."""

    def existing(self):
        return [Question(**q) for q in stored_quiz()["questions"]]

    def test_scenario_update_remove_and_append(self):
        incoming = [
            QuestionPatch(id=Q1, options=["a", "b"], correct_answer="b"),
            QuestionPatch(question="new", options=["x", "y"], correct_answer="x"),
        ]
        result = quiz_service.reconcile_questions(self.existing(), incoming)

        assert len(result) == 2
        assert result[0].id == Q1
        assert result[0].correct_answer == "b"
        assert result[0].question == "1/2 + 1/2?"
        assert result[1].question == "new"
        assert result[1].id not in (Q1, Q2)
        assert Q2 not in [q.id for q in result]

    def test_unknown_id_fails(self):
        with pytest.raises(ValidationError) as exc:
            quiz_service.reconcile_questions(self.existing(), [QuestionPatch(id="999", correct_answer="a")])
        assert "999" in str(exc.value)

    def test_new_question_with_answer_outside_options_fails(self):
        incoming = [QuestionPatch(question="new", options=["x", "y"], correct_answer="z")]
        with pytest.raises(ValidationError):
            quiz_service.reconcile_questions(self.existing(), incoming)

    def test_update_that_breaks_answer_invariant_fails(self):
        # New options no longer contain the stored answer "a"
        incoming = [QuestionPatch(id=Q1, options=["x", "y"])]
        with pytest.raises(ValidationError):
            quiz_service.reconcile_questions(self.existing(), incoming)

    def test_answer_only_change_outside_stored_options_fails(self):
        incoming = [QuestionPatch(id=Q1, correct_answer="z")]
        with pytest.raises(ValidationError) as exc:
            quiz_service.reconcile_questions(self.existing(), incoming)
        assert "correct_answer must be one of options" in str(exc.value)

    def test_new_question_defaults_to_multiple_choice(self):
        incoming = [QuestionPatch(question="new", options=["x", "y"], correct_answer="x")]
        result = quiz_service.reconcile_questions(self.existing(), incoming)
        assert result[0].type == "Multiple Choice"

    def test_new_question_needs_two_options(self):
        incoming = [QuestionPatch(question="solo", options=["x"], correct_answer="x")]
        with pytest.raises(ValidationError) as exc:
            quiz_service.reconcile_questions(self.existing(), incoming)
        assert "at least 2 options" in str(exc.value)

    def test_survivors_keep_stored_order(self):
        incoming = [QuestionPatch(id=Q2), QuestionPatch(id=Q1)]
        result = quiz_service.reconcile_questions(self.existing(), incoming)
        assert [q.id for q in result] == [Q1, Q2]

    def test_repeated_id_last_entry_wins(self):
        incoming = [
            QuestionPatch(id=Q1, correct_answer="b"),
            QuestionPatch(id=Q1, question="changed twice"),
        ]
        result = quiz_service.reconcile_questions(self.existing(), incoming)
        assert len(result) == 1
        assert result[0].correct_answer == "b"
        assert result[0].question == "changed twice"

    def test_empty_list_removes_everything(self):
        assert quiz_service.reconcile_questions(self.existing(), []) == []

    def test_full_snapshot_is_idempotent(self):
        existing = self.existing()
        snapshot = [QuestionPatch(**q.model_dump()) for q in existing]
        first = quiz_service.reconcile_questions(existing, snapshot)
        second = quiz_service.reconcile_questions(first, snapshot)
        assert first == second == existing

    def test_stored_list_is_not_mutated(self):
        existing = self.existing()
        before = copy.deepcopy(existing)
        quiz_service.reconcile_questions(existing, [QuestionPatch(id=Q1, correct_answer="b")])
        assert existing == before


class TestUpdateQuiz:

    def test_scenario_a_persists_merged_questions(self, quiz_db, tutor):
        payload = base_payload([
            {"id": Q1, "question": "1/2 + 1/2?", "options": ["a", "b"], "correct_answer": "b"},
            {"question": "new", "options": ["x", "y"], "correct_answer": "x"},
        ])

        quiz = quiz_service.update_quiz(QUIZ_ID, tutor, payload, db_conn=quiz_db)

        assert len(quiz.questions) == 2
        filter_doc, replacement = saved_doc(quiz_db)
        assert filter_doc == {"_id": QUIZ_ID, "version": 3}
        assert replacement["version"] == 4
        assert [q["correct_answer"] for q in replacement["questions"]] == ["b", "x"]
        assert Q2 not in [q["_id"] for q in replacement["questions"]]
        for question in replacement["questions"]:
            assert question["correct_answer"] in question["options"]

    def test_scenario_b_unknown_id_writes_nothing(self, quiz_db, tutor):
        payload = base_payload([{"id": "999", "question": "?", "options": ["a", "b"], "correct_answer": "a"}])
        with pytest.raises(ValidationError):
            quiz_service.update_quiz(QUIZ_ID, tutor, payload, db_conn=quiz_db)
        quiz_db.quizzes.replace_one.assert_not_called()

    def test_scenario_c_invalid_new_question_writes_nothing(self, quiz_db, tutor):
        payload = base_payload([{"question": "new", "options": ["x", "y"], "correct_answer": "q"}])
        with pytest.raises(ValidationError):
            quiz_service.update_quiz(QUIZ_ID, tutor, payload, db_conn=quiz_db)
        quiz_db.quizzes.replace_one.assert_not_called()

    def test_non_owner_is_forbidden_even_with_invalid_payload(self, quiz_db, other_tutor):
        with pytest.raises(ForbiddenError):
            quiz_service.update_quiz(QUIZ_ID, other_tutor, {"questions": "not a list"}, db_conn=quiz_db)
        quiz_db.quizzes.replace_one.assert_not_called()

    def test_missing_metadata_is_rejected(self, quiz_db, tutor):
        with pytest.raises(ValidationError) as exc:
            quiz_service.update_quiz(QUIZ_ID, tutor, {"title": "Only title"}, db_conn=quiz_db)
        assert "Missing required fields" in str(exc.value)

    def test_omitted_questions_keep_question_set(self, quiz_db, tutor):
        quiz = quiz_service.update_quiz(QUIZ_ID, tutor, base_payload(description="new text"), db_conn=quiz_db)
        assert [q.id for q in quiz.questions] == [Q1, Q2]
        _, replacement = saved_doc(quiz_db)
        assert replacement["description"] == "new text"

    def test_quiz_not_found(self, mock_db, tutor):
        mock_db.quizzes.find_one.return_value = None
        with pytest.raises(NotFoundError):
            quiz_service.update_quiz(QUIZ_ID, tutor, base_payload([]), db_conn=mock_db)

    def test_malformed_id(self, mock_db, tutor):
        with pytest.raises(ValidationError):
            quiz_service.update_quiz("not-a-uuid", tutor, base_payload([]), db_conn=mock_db)
        mock_db.quizzes.find_one.assert_not_called()

    def test_version_mismatch_in_payload_is_conflict(self, quiz_db, tutor):
        with pytest.raises(ConflictError):
            quiz_service.update_quiz(QUIZ_ID, tutor, base_payload([], version=1), db_conn=quiz_db)
        quiz_db.quizzes.replace_one.assert_not_called()

    def test_concurrent_write_is_conflict(self, quiz_db, tutor):
        quiz_db.quizzes.replace_one.return_value.matched_count = 0
        with pytest.raises(ConflictError):
            quiz_service.update_quiz(QUIZ_ID, tutor, base_payload([]), db_conn=quiz_db)

    def test_legacy_document_without_version(self, mock_db, tutor):
        doc = stored_quiz()
        doc.pop("version")
        mock_db.quizzes.find_one.return_value = doc
        mock_db.quizzes.replace_one.return_value.matched_count = 1

        quiz = quiz_service.update_quiz(QUIZ_ID, tutor, base_payload(), db_conn=mock_db)

        filter_doc, _ = saved_doc(mock_db)
        assert filter_doc["version"] == {"$in": [0, None]}
        assert quiz.version == 1


class TestCreateQuiz:

    def test_create_assigns_question_ids(self, mock_db, tutor):
        payload = base_payload([
            {"question": "2+2?", "options": ["3", "4"], "correct_answer": "4"},
        ], due_date="2026-12-01")

        quiz = quiz_service.create_quiz(tutor, payload, db_conn=mock_db)

        assert quiz.created_by == tutor.id
        assert quiz.version == 0
        assert quiz.questions[0].id
        inserted = mock_db.quizzes.insert_one.call_args[0][0]
        assert inserted["_id"] == quiz.id
        assert inserted["questions"][0]["_id"] == quiz.questions[0].id
        assert quiz.questions[0].type == "Multiple Choice"

    def test_create_requires_questions(self, mock_db, tutor):
        with pytest.raises(ValidationError):
            quiz_service.create_quiz(tutor, base_payload([]), db_conn=mock_db)
        mock_db.quizzes.insert_one.assert_not_called()

    def test_create_rejects_bad_due_date(self, mock_db, tutor):
        payload = base_payload([{"question": "?", "options": ["a", "b"], "correct_answer": "a"}], due_date="01/12/2026")
        with pytest.raises(ValidationError):
            quiz_service.create_quiz(tutor, payload, db_conn=mock_db)


class TestDeleteQuiz:

    def test_scenario_d_non_owner_cannot_delete(self, quiz_db, other_tutor):
        with pytest.raises(ForbiddenError):
            quiz_service.delete_quiz(QUIZ_ID, other_tutor, db_conn=quiz_db)
        quiz_db.quizzes.find_one_and_delete.assert_not_called()

    def test_owner_deletes(self, quiz_db, tutor):
        quiz_db.quizzes.find_one_and_delete.return_value = stored_quiz()
        result = quiz_service.delete_quiz(QUIZ_ID, tutor, db_conn=quiz_db)
        assert result == {"id": QUIZ_ID, "title": "Fractions", "subject": "Math"}
        quiz_db.quizzes.find_one_and_delete.assert_called_once_with({"_id": QUIZ_ID})

    def test_vanished_between_read_and_delete(self, quiz_db, tutor):
        quiz_db.quizzes.find_one_and_delete.return_value = None
        with pytest.raises(NotFoundError):
            quiz_service.delete_quiz(QUIZ_ID, tutor, db_conn=quiz_db)


class TestGetQuiz:

    def test_student_in_class_grade_gets_no_answers(self, quiz_db, student):
        quiz_db.users.find_one.return_value = {
            "_id": student.id, "first_name": "Sam", "last_name": "Lee", "email": "sam@example.com",
            "password_hash": "x", "role": "student", "class_grade": "5th Grade",
        }
        data = quiz_service.get_quiz(QUIZ_ID, student, db_conn=quiz_db)
        assert all("correct_answer" not in q for q in data["questions"])

    def test_student_in_other_grade_is_forbidden(self, quiz_db, student):
        quiz_db.users.find_one.return_value = {
            "_id": student.id, "first_name": "Sam", "last_name": "Lee", "email": "sam@example.com",
            "password_hash": "x", "role": "student", "class_grade": "7th Grade",
        }
        with pytest.raises(ForbiddenError):
            quiz_service.get_quiz(QUIZ_ID, student, db_conn=quiz_db)

    def test_admin_sees_answers(self, quiz_db, admin):
        data = quiz_service.get_quiz(QUIZ_ID, admin, db_conn=quiz_db)
        assert data["questions"][0]["correct_answer"] == "a"


class TestListTutorQuizzes:

    def test_page_shape_and_status(self, mock_db, tutor, cursor):
        past = stored_quiz(due_date="2020-01-01")
        mock_db.quizzes.find.return_value = cursor([past])
        mock_db.quizzes.count_documents.return_value = 11

        result = quiz_service.list_tutor_quizzes(tutor, subject="Math", page=2, limit=5, db_conn=mock_db)

        assert result["page"] == 2
        assert result["limit"] == 5
        assert result["total"] == 11
        assert result["data"][0]["total_questions"] == 2
        assert result["data"][0]["status"] == "completed"
        mock_db.quizzes.find.assert_called_once_with({"created_by": tutor.id, "subject": "Math"})
        assert ("skip", 5) in mock_db.quizzes.find.return_value.calls

    def test_quiz_status_without_due_date_is_active(self):
        from tutorhub.domain.models.db_models import Quiz
        quiz = Quiz(**stored_quiz())
        assert quiz_service.quiz_status(quiz, today=date(2030, 1, 1)) == "active"
