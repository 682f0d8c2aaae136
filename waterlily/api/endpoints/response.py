import logging

from fastapi import APIRouter, Depends, HTTPException, status

from waterlily.api.errors import internal_error
from waterlily.crud import crud_response, crud_survey
from waterlily.deps import get_store
from waterlily.docstore import RESPONSES, DocumentStore
from waterlily.schemas.response import Response, ResponseCreate

logger = logging.getLogger(__name__)

router = APIRouter()


# Anyone holding the share link may answer; there is no ownership check here.
@router.post("", response_model=Response, status_code=status.HTTP_201_CREATED)
async def create_response_item(
    resp_in: ResponseCreate, store: DocumentStore = Depends(get_store)
):
    try:
        survey = await crud_survey.get_survey(store, resp_in.survey_id)
    except Exception:
        raise internal_error(f"loading survey {resp_in.survey_id}")
    if survey is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Survey not found")

    try:
        response_id = await crud_response.submit_response(store, resp_in)
        snapshot = await store.collection(RESPONSES).get(response_id)
    except Exception:
        raise internal_error("submitting response")
    return crud_response.response_from_snapshot(snapshot)
