import logging
from datetime import datetime
from typing import List, Optional

from waterlily.docstore import RESPONSES, DocumentSnapshot, DocumentStore
from waterlily.schemas.response import Response, ResponseCreate

logger = logging.getLogger(__name__)


def response_from_snapshot(snapshot: DocumentSnapshot) -> Response:
    data = snapshot.data
    return Response(
        id=snapshot.id,
        survey_id=data.get("surveyId") or "",
        answers=data.get("answers") if isinstance(data.get("answers"), list) else [],
        responded_email=data.get("respondedEmail") or None,
        created_at=snapshot.create_time,
    )


async def submit_response(
    store: DocumentStore,
    response_in: ResponseCreate,
    created_at: Optional[datetime] = None,
) -> str:
    response_id = await store.collection(RESPONSES).add(
        {
            "surveyId": response_in.survey_id,
            "answers": [a.model_dump(by_alias=True) for a in response_in.answers],
            "respondedEmail": response_in.responded_email or None,
        },
        created_at=created_at,
    )
    logger.info("Response %s recorded for survey %s", response_id, response_in.survey_id)
    return response_id


async def get_survey_responses(store: DocumentStore, survey_id: str) -> List[Response]:
    # Store errors propagate: a failed query must not look like "no responses yet".
    snapshots = await store.collection(RESPONSES).where("surveyId", survey_id)
    return [response_from_snapshot(s) for s in snapshots]


async def count_survey_responses(store: DocumentStore, survey_id: str) -> int:
    return await store.collection(RESPONSES).count("surveyId", survey_id)
