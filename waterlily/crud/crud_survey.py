import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from waterlily.docstore import SURVEYS, DocumentSnapshot, DocumentStore
from waterlily.schemas.survey import Question, Survey, SurveyCreate, SurveyPatch

logger = logging.getLogger(__name__)


def sanitize_question(question: Question) -> Dict[str, Any]:
    """Document form of a question; options only survive on non-empty multiple choice."""
    doc: Dict[str, Any] = {
        "id": question.id,
        "text": question.kind,
        "question": question.prompt,
    }
    if question.kind == "multipleChoice" and question.options:
        doc["options"] = list(question.options)
    return doc


def sanitize_questions(questions: Iterable[Question]) -> List[Dict[str, Any]]:
    return [sanitize_question(q) for q in questions]


def survey_from_snapshot(snapshot: DocumentSnapshot) -> Survey:
    data = snapshot.data
    return Survey(
        id=snapshot.id,
        title=data.get("title") or "",
        description=data.get("description") or "",
        questions=data.get("questions") if isinstance(data.get("questions"), list) else [],
        created_by=data.get("createdBy") or "",
        created_at=snapshot.create_time,
    )


async def create_survey(
    store: DocumentStore,
    survey_in: SurveyCreate,
    owner_id: str,
    created_at: Optional[datetime] = None,
) -> str:
    survey_id = await store.collection(SURVEYS).add(
        {
            "title": survey_in.title,
            "description": survey_in.description or "",
            "questions": sanitize_questions(survey_in.questions),
            "createdBy": owner_id,
        },
        created_at=created_at,
    )
    logger.info("Survey %s created by %s", survey_id, owner_id)
    return survey_id


async def get_survey(store: DocumentStore, survey_id: str) -> Optional[Survey]:
    snapshot = await store.collection(SURVEYS).get(survey_id)
    if snapshot is None:
        return None
    return survey_from_snapshot(snapshot)


async def get_user_surveys(store: DocumentStore, owner_id: str) -> List[Survey]:
    snapshots = await store.collection(SURVEYS).where("createdBy", owner_id)
    return [survey_from_snapshot(s) for s in snapshots]


async def update_survey(store: DocumentStore, survey_id: str, patch: SurveyPatch) -> Survey:
    """Apply the fields set in ``patch``; raises DocumentNotFoundError for unknown ids."""
    fields: Dict[str, Any] = {}
    if "title" in patch.model_fields_set and patch.title is not None:
        fields["title"] = patch.title
    if "description" in patch.model_fields_set:
        fields["description"] = patch.description or ""
    if "questions" in patch.model_fields_set and patch.questions is not None:
        fields["questions"] = sanitize_questions(patch.questions)

    collection = store.collection(SURVEYS)
    await collection.update(survey_id, fields)
    logger.info("Survey %s updated (%s)", survey_id, ", ".join(sorted(fields)) or "no fields")
    return survey_from_snapshot(await collection.get(survey_id))


async def delete_survey(store: DocumentStore, survey_id: str) -> None:
    await store.collection(SURVEYS).delete(survey_id)
    logger.info("Survey %s deleted", survey_id)
