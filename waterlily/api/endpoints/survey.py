import csv
import io
import logging
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from waterlily.api.errors import internal_error, invalid_fields
from waterlily.crud import crud_response, crud_survey
from waterlily.deps import SessionContext, get_store, require_session
from waterlily.docstore import DocumentStore
from waterlily.schemas.response import Response
from waterlily.schemas.survey import Survey, SurveyCreate, SurveyDeleteResponse, SurveyPatch

logger = logging.getLogger(__name__)

router = APIRouter()


async def load_owned_survey(
    store: DocumentStore, survey_id: str, session: SessionContext, action: str
) -> Survey:
    """Fetch a survey the caller owns: 404 if absent, 403 for anyone but the owner."""
    try:
        survey = await crud_survey.get_survey(store, survey_id)
    except Exception:
        raise internal_error(f"loading survey {survey_id}")
    if survey is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Survey not found")
    if survey.created_by != session.uid:
        logger.warning(
            "User %s tried to %s survey %s owned by %s",
            session.uid,
            action,
            survey_id,
            survey.created_by,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unauthorized to {action} this survey",
        )
    return survey


@router.post("", response_model=Survey, status_code=status.HTTP_201_CREATED)
async def create_survey_item(
    survey_in: SurveyCreate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    try:
        survey_id = await crud_survey.create_survey(store, survey_in, owner_id=session.uid)
        return await crud_survey.get_survey(store, survey_id)
    except Exception:
        raise internal_error("creating survey")


@router.get("", response_model=List[Survey])
async def read_user_surveys(
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    try:
        return await crud_survey.get_user_surveys(store, session.uid)
    except Exception:
        raise internal_error("listing surveys")


@router.get("/{survey_id}", response_model=Survey)
async def read_survey_item(survey_id: str, store: DocumentStore = Depends(get_store)):
    try:
        survey = await crud_survey.get_survey(store, survey_id)
    except Exception:
        raise internal_error(f"loading survey {survey_id}")
    if survey is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Survey not found")
    return survey


@router.patch("/{survey_id}", response_model=Survey)
async def update_survey_item(
    survey_id: str,
    body: Any = Body(None),
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    # Ownership first: a non-owner gets 403 whatever the body holds.
    await load_owned_survey(store, survey_id, session, "update")
    try:
        patch = SurveyPatch.model_validate(body)
    except ValidationError as e:
        logger.info("Rejected update of survey %s: %s", survey_id, e.errors())
        raise invalid_fields()
    try:
        return await crud_survey.update_survey(store, survey_id, patch)
    except Exception:
        raise internal_error(f"updating survey {survey_id}")


@router.delete("/{survey_id}", response_model=SurveyDeleteResponse)
async def delete_survey_item(
    survey_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    await load_owned_survey(store, survey_id, session, "delete")
    try:
        await crud_survey.delete_survey(store, survey_id)
    except Exception:
        raise internal_error(f"deleting survey {survey_id}")
    return SurveyDeleteResponse(id=survey_id)


@router.get("/{survey_id}/responses", response_model=List[Response])
async def read_survey_responses(
    survey_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    await load_owned_survey(store, survey_id, session, "view responses of")
    try:
        return await crud_response.get_survey_responses(store, survey_id)
    except Exception:
        raise internal_error(f"listing responses of survey {survey_id}")


def format_answer(value) -> str:
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return "" if value is None else str(value)


def responses_to_csv(survey: Survey, responses: List[Response]) -> str:
    """One row per response, one column per question (in survey order)."""
    headers = ["response_id", "created_at", "responded_email"]
    question_columns = {}
    for q in survey.questions:
        column = q.prompt or q.id
        # keep duplicate prompts apart
        if column in headers:
            column = f"{column} [{q.id}]"
        question_columns[q.id] = column
        headers.append(column)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=headers, extrasaction="ignore", quoting=csv.QUOTE_ALL)
    writer.writeheader()
    for r in responses:
        row = {
            "response_id": r.id,
            "created_at": r.created_at.isoformat(),
            "responded_email": r.responded_email or "",
        }
        for answer in r.answers:
            column = question_columns.get(answer.question_id)
            if column is not None:
                row[column] = format_answer(answer.answer)
        writer.writerow(row)
    return output.getvalue()


@router.get(
    "/{survey_id}/responses/export",
    response_description="CSV file of survey responses",
)
async def export_survey_responses(
    survey_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    survey = await load_owned_survey(store, survey_id, session, "export responses of")
    try:
        responses = await crud_response.get_survey_responses(store, survey_id)
    except Exception:
        raise internal_error(f"exporting responses of survey {survey_id}")

    logger.info("User %s exported %d responses of survey %s", session.uid, len(responses), survey_id)
    safe_survey_title = "".join(c if c.isalnum() else "_" for c in survey.title)
    filename = f"survey_{survey_id}_{safe_survey_title}_responses.csv"
    return StreamingResponse(
        iter([responses_to_csv(survey, responses)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
