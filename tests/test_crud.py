from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import text

from waterlily.crud import crud_response, crud_survey
from waterlily.docstore import DocumentNotFoundError, DocumentStoreError
from waterlily.schemas import Question, ResponseCreate, SurveyCreate, SurveyPatch

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_survey(title="Team survey", questions=None) -> SurveyCreate:
    return SurveyCreate(
        title=title,
        description="Quarterly check-in",
        questions=questions
        or [
            Question(id="q1", kind="text", prompt="How are you?"),
            Question(id="q2", kind="multipleChoice", prompt="Pick one", options=["A", "B"]),
        ],
    )


async def test_create_survey_is_retrievable_with_owner(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), owner_id="owner-1")

    survey = await crud_survey.get_survey(store, survey_id)
    assert survey.id == survey_id
    assert survey.title == "Team survey"
    assert survey.created_by == "owner-1"
    assert [q.id for q in survey.questions] == ["q1", "q2"]
    assert survey.questions[1].options == ["A", "B"]


async def test_create_survey_strips_options_from_text_questions(store):
    questions = [
        Question(id="q1", kind="text", prompt="Free text", options=["ignored"]),
        Question(id="q2", kind="multipleChoice", prompt="No options", options=[]),
        Question(id="q3", kind="multipleChoice", prompt="Options", options=["x", "y"]),
    ]
    survey_id = await crud_survey.create_survey(store, make_survey(questions=questions), "o")

    stored = (await store.collection("surveys").get(survey_id)).data["questions"]
    assert "options" not in stored[0]
    assert "options" not in stored[1]
    assert stored[2] == {
        "id": "q3",
        "text": "multipleChoice",
        "question": "Options",
        "options": ["x", "y"],
    }


async def test_create_survey_keeps_given_timestamp(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o", created_at=T0)
    assert (await crud_survey.get_survey(store, survey_id)).created_at == T0


async def test_get_survey_missing_is_none(store):
    assert await crud_survey.get_survey(store, "nope") is None


async def test_get_user_surveys_newest_first_and_owner_only(store):
    first = await crud_survey.create_survey(store, make_survey("First"), "alice", created_at=T0)
    second = await crud_survey.create_survey(
        store, make_survey("Second"), "alice", created_at=T0 + timedelta(days=1)
    )
    await crud_survey.create_survey(store, make_survey("Bob's"), "bob")

    surveys = await crud_survey.get_user_surveys(store, "alice")
    assert [s.id for s in surveys] == [second, first]
    assert await crud_survey.get_user_surveys(store, "nobody") == []


async def test_update_survey_writes_only_patched_fields(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o")

    updated = await crud_survey.update_survey(store, survey_id, SurveyPatch(title="Renamed"))
    assert updated.title == "Renamed"
    assert updated.description == "Quarterly check-in"
    assert updated.created_by == "o"
    assert len(updated.questions) == 2


async def test_update_survey_sanitizes_questions(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o")
    patch = SurveyPatch(questions=[Question(id="n1", kind="text", prompt="New", options=["x"])])

    await crud_survey.update_survey(store, survey_id, patch)
    stored = (await store.collection("surveys").get(survey_id)).data["questions"]
    assert stored == [{"id": "n1", "text": "text", "question": "New"}]


async def test_update_missing_survey_raises(store):
    with pytest.raises(DocumentNotFoundError):
        await crud_survey.update_survey(store, "missing", SurveyPatch(title="x"))


def test_survey_patch_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        SurveyPatch.model_validate({"id": "other", "title": "x"})
    with pytest.raises(ValidationError):
        SurveyPatch.model_validate({"createdBy": "someone-else"})


def test_survey_create_requires_title_and_questions():
    with pytest.raises(ValidationError):
        SurveyCreate.model_validate({"title": "", "questions": [{"id": "q", "text": "text", "question": "?"}]})
    with pytest.raises(ValidationError):
        SurveyCreate.model_validate({"title": "t", "questions": []})


async def test_delete_survey(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o")
    await crud_survey.delete_survey(store, survey_id)
    assert await crud_survey.get_survey(store, survey_id) is None


async def test_submit_response_and_list_newest_first(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o")
    older = await crud_response.submit_response(
        store,
        ResponseCreate(
            survey_id=survey_id,
            answers=[{"questionId": "q1", "answer": "Fine"}],
            responded_email="a@example.com",
        ),
        created_at=T0,
    )
    newer = await crud_response.submit_response(
        store,
        ResponseCreate(survey_id=survey_id, answers=[{"questionId": "q2", "answer": ["A", "B"]}]),
        created_at=T0 + timedelta(minutes=5),
    )

    responses = await crud_response.get_survey_responses(store, survey_id)
    assert [r.id for r in responses] == [newer, older]
    assert responses[0].answers[0].answer == ["A", "B"]
    assert responses[0].responded_email is None
    assert responses[1].responded_email == "a@example.com"


async def test_submit_response_stores_answers_verbatim(store):
    response_id = await crud_response.submit_response(
        store,
        ResponseCreate(survey_id="s1", answers=[{"questionId": "q9", "answer": "anything"}]),
    )
    data = (await store.collection("responses").get(response_id)).data
    assert data == {
        "surveyId": "s1",
        "answers": [{"questionId": "q9", "answer": "anything"}],
        "respondedEmail": None,
    }


async def test_get_survey_responses_for_unknown_survey_is_empty(store):
    assert await crud_response.get_survey_responses(store, "unknown") == []


async def test_get_survey_responses_propagates_store_errors(store, db_session):
    await db_session.execute(text("DROP TABLE documents"))
    await db_session.commit()
    with pytest.raises(DocumentStoreError):
        await crud_response.get_survey_responses(store, "s1")


def test_duplicate_question_ids_are_rejected():
    duplicated = [
        {"id": "q1", "text": "text", "question": "One"},
        {"id": "q1", "text": "text", "question": "Two"},
    ]
    with pytest.raises(ValidationError):
        SurveyCreate.model_validate({"title": "t", "questions": duplicated})
    with pytest.raises(ValidationError):
        SurveyPatch.model_validate({"questions": duplicated})


async def test_count_survey_responses(store):
    survey_id = await crud_survey.create_survey(store, make_survey(), "o")
    assert await crud_response.count_survey_responses(store, survey_id) == 0
    for answer in ("a", "b"):
        await crud_response.submit_response(
            store, ResponseCreate(survey_id=survey_id, answers=[{"questionId": "q1", "answer": answer}])
        )
    assert await crud_response.count_survey_responses(store, survey_id) == 2
