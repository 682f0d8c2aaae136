"""
HTML pages: sign-up/sign-in, dashboard, survey creation and editing, the
public survey page respondents fill in, and the owner's response view.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from . import config
from .api.endpoints.survey import responses_to_csv
from .crud import crud_response, crud_survey
from .deps import SessionContext, get_cookie_session, get_identity_provider, get_store
from .docstore import DocumentStore
from .identity import (
    EmailAlreadyExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    IssuedToken,
)
from .schemas.response import Answer, ResponseCreate
from .schemas.survey import Question, Survey, SurveyCreate, SurveyPatch

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

DEFAULT_QUESTION_ROWS = 5
MAX_QUESTION_ROWS = 50

router = APIRouter()


def share_link(survey_id: str) -> str:
    return f"{config.APP_BASE_URL}/surveys/{survey_id}"


def render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200):
    return templates.TemplateResponse(request, name, context or {}, status_code=status_code)


def error_page(request: Request, status_code: int, title: str, message: str, session=None):
    return render(
        request,
        "error.html",
        {"title": title, "message": message, "session": session},
        status_code=status_code,
    )


def server_error(request: Request, action: str, session=None):
    logger.exception("Error %s", action)
    return error_page(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Something went wrong",
        "Please try again later.",
        session,
    )


def redirect(url: str) -> RedirectResponse:
    # 303 so the browser follows a form POST with a GET
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def start_session(response: RedirectResponse, issued: IssuedToken) -> RedirectResponse:
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        issued.token,
        max_age=config.AUTH_TOKEN_TTL_MINUTES * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.SESSION_COOKIE_SECURE,
    )
    return response


def end_session(response: RedirectResponse) -> RedirectResponse:
    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")
    return response


def signed_out_redirect() -> RedirectResponse:
    # The gate only saw a cookie; it did not verify, so drop it.
    return end_session(redirect("/auth/signin"))


def parse_question_rows(kinds: List[str], prompts: List[str], options: List[str]) -> List[Question]:
    """Turn the create form's parallel row fields into questions, skipping blank rows."""
    questions = []
    for index, prompt in enumerate(prompts):
        prompt = prompt.strip()
        if not prompt:
            continue
        kind = kinds[index] if index < len(kinds) else "text"
        raw_options = options[index] if index < len(options) else ""
        option_list = [o.strip() for o in raw_options.split(",") if o.strip()]
        questions.append(
            Question(
                id=f"q{len(questions) + 1}",
                kind="multipleChoice" if kind == "multipleChoice" else "text",
                prompt=prompt,
                options=option_list or None,
            )
        )
    return questions


# --- Public pages ---


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, session: Optional[SessionContext] = Depends(get_cookie_session)):
    return render(request, "index.html", {"session": session})


@router.get("/auth/signin", response_class=HTMLResponse)
async def signin_form(request: Request):
    return render(request, "signin.html", {"email": ""})


@router.post("/auth/signin", response_class=HTMLResponse)
async def signin_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        issued = await identity.sign_in(email, password)
    except InvalidCredentialsError:
        return render(
            request,
            "signin.html",
            {"email": email, "error": "Invalid email or password."},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    except Exception:
        return server_error(request, "signing in")
    return start_session(redirect("/dashboard"), issued)


@router.get("/auth/signup", response_class=HTMLResponse)
async def signup_form(request: Request):
    return render(request, "signup.html", {"email": "", "display_name": ""})


@router.post("/auth/signup", response_class=HTMLResponse)
async def signup_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    display_name: str = Form(""),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    context = {"email": email, "display_name": display_name}
    if "@" not in email or len(password) < 6 or len(password.encode("utf-8")) > 72:
        context["error"] = "Enter a valid email and a password of 6 to 72 characters."
        return render(request, "signup.html", context, status_code=status.HTTP_400_BAD_REQUEST)
    try:
        user = await identity.create_user(email, password, display_name.strip() or None)
    except EmailAlreadyExistsError:
        context["error"] = "An account with this email already exists."
        return render(request, "signup.html", context, status_code=status.HTTP_409_CONFLICT)
    except Exception:
        return server_error(request, "signing up")
    return start_session(redirect("/dashboard"), identity.create_id_token(user))


@router.post("/signout")
async def signout():
    return end_session(redirect("/"))


# --- Signed-in pages ---


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    try:
        surveys = await crud_survey.get_user_surveys(store, session.uid)
        rows = []
        for survey in surveys:
            rows.append(
                {
                    "survey": survey,
                    "response_count": await crud_response.count_survey_responses(store, survey.id),
                    "share_link": share_link(survey.id),
                }
            )
    except Exception:
        return server_error(request, "loading dashboard", session)
    return render(request, "dashboard.html", {"session": session, "rows": rows})


def _create_context(session, rows: int, **extra) -> dict:
    context = {
        "session": session,
        "rows": rows,
        "title": "",
        "description": "",
        "questions": [],
    }
    context.update(extra)
    return context


@router.get("/surveys/create", response_class=HTMLResponse)
async def create_survey_form(
    request: Request,
    rows: int = DEFAULT_QUESTION_ROWS,
    session: Optional[SessionContext] = Depends(get_cookie_session),
):
    if session is None:
        return signed_out_redirect()
    rows = max(1, min(rows, MAX_QUESTION_ROWS))
    return render(request, "survey_create.html", _create_context(session, rows))


@router.post("/surveys/create", response_class=HTMLResponse)
async def create_survey_submit(
    request: Request,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    form = await request.form()
    title = str(form.get("title", "")).strip()
    description = str(form.get("description", "")).strip()
    prompts = [str(v) for v in form.getlist("question_prompt")]
    questions = parse_question_rows(
        [str(v) for v in form.getlist("question_kind")],
        prompts,
        [str(v) for v in form.getlist("question_options")],
    )
    if not title or not questions:
        context = _create_context(
            session,
            max(len(prompts), 1),
            title=title,
            description=description,
            questions=questions,
            error="A survey needs a title and at least one question.",
        )
        return render(request, "survey_create.html", context, status_code=status.HTTP_400_BAD_REQUEST)

    survey_in = SurveyCreate(title=title, description=description, questions=questions)
    try:
        survey_id = await crud_survey.create_survey(store, survey_in, owner_id=session.uid)
    except Exception:
        return server_error(request, "creating survey", session)
    return redirect(f"/surveys/{survey_id}")


async def _owned_survey_or_error(request, store, survey_id, session):
    """(survey, None) for the owner, otherwise (None, error response)."""
    try:
        survey = await crud_survey.get_survey(store, survey_id)
    except Exception:
        return None, server_error(request, f"loading survey {survey_id}", session)
    if survey is None:
        return None, error_page(
            request, status.HTTP_404_NOT_FOUND, "Survey not found",
            "The survey you are looking for does not exist.", session,
        )
    if survey.created_by != session.uid:
        logger.warning("User %s denied access to survey %s", session.uid, survey_id)
        return None, error_page(
            request, status.HTTP_403_FORBIDDEN, "Not allowed",
            "Only the owner of this survey can do that.", session,
        )
    return survey, None


@router.get("/surveys/edit/{survey_id}", response_class=HTMLResponse)
async def edit_survey_form(
    request: Request,
    survey_id: str,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    survey, error = await _owned_survey_or_error(request, store, survey_id, session)
    if error is not None:
        return error
    return render(
        request,
        "survey_edit.html",
        {"session": session, "survey": survey, "title": survey.title, "description": survey.description},
    )


@router.post("/surveys/edit/{survey_id}", response_class=HTMLResponse)
async def edit_survey_submit(
    request: Request,
    survey_id: str,
    title: str = Form(""),
    description: str = Form(""),
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    survey, error = await _owned_survey_or_error(request, store, survey_id, session)
    if error is not None:
        return error
    title = title.strip()
    if not title:
        return render(
            request,
            "survey_edit.html",
            {
                "session": session,
                "survey": survey,
                "title": title,
                "description": description,
                "error": "The title cannot be empty.",
            },
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    try:
        await crud_survey.update_survey(
            store, survey_id, SurveyPatch(title=title, description=description.strip())
        )
    except Exception:
        return server_error(request, f"updating survey {survey_id}", session)
    return redirect(f"/surveys/{survey_id}")


@router.post("/surveys/{survey_id}/delete")
async def delete_survey_submit(
    request: Request,
    survey_id: str,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    survey, error = await _owned_survey_or_error(request, store, survey_id, session)
    if error is not None:
        return error
    try:
        await crud_survey.delete_survey(store, survey_id)
    except Exception:
        return server_error(request, f"deleting survey {survey_id}", session)
    return redirect("/dashboard")


@router.get("/surveys/{survey_id}/export")
async def export_survey_csv(
    request: Request,
    survey_id: str,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    if session is None:
        return signed_out_redirect()
    survey, error = await _owned_survey_or_error(request, store, survey_id, session)
    if error is not None:
        return error
    try:
        responses = await crud_response.get_survey_responses(store, survey_id)
    except Exception:
        return server_error(request, f"exporting responses of survey {survey_id}", session)
    safe_survey_title = "".join(c if c.isalnum() else "_" for c in survey.title)
    return Response(
        content=responses_to_csv(survey, responses),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=survey_{survey_id}_{safe_survey_title}_responses.csv"
        },
    )


# --- Survey page (public, owner sees more) ---


async def _detail_context(store: DocumentStore, survey: Survey, session: Optional[SessionContext]) -> dict:
    is_owner = session is not None and session.uid == survey.created_by
    context = {
        "session": session,
        "survey": survey,
        "is_owner": is_owner,
        "responses": [],
        "share_link": share_link(survey.id),
        "prompts": {q.id: q.prompt for q in survey.questions},
    }
    if is_owner:
        context["responses"] = await crud_response.get_survey_responses(store, survey.id)
    return context


@router.get("/surveys/{survey_id}", response_class=HTMLResponse)
async def survey_detail(
    request: Request,
    survey_id: str,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    try:
        survey = await crud_survey.get_survey(store, survey_id)
        if survey is not None:
            context = await _detail_context(store, survey, session)
    except Exception:
        return server_error(request, f"loading survey {survey_id}", session)
    if survey is None:
        return error_page(
            request, status.HTTP_404_NOT_FOUND, "Survey not found",
            "The survey you are looking for does not exist.", session,
        )
    return render(request, "survey_detail.html", context)


@router.post("/surveys/{survey_id}/respond", response_class=HTMLResponse)
async def survey_respond(
    request: Request,
    survey_id: str,
    session: Optional[SessionContext] = Depends(get_cookie_session),
    store: DocumentStore = Depends(get_store),
):
    try:
        survey = await crud_survey.get_survey(store, survey_id)
    except Exception:
        return server_error(request, f"loading survey {survey_id}", session)
    if survey is None:
        return error_page(
            request, status.HTTP_404_NOT_FOUND, "Survey not found",
            "The survey you are looking for does not exist.", session,
        )

    form = await request.form()
    answers = []
    for question in survey.questions:
        field = f"answer_{question.id}"
        if question.kind == "multipleChoice":
            chosen = [str(v) for v in form.getlist(field) if str(v).strip()]
            if chosen:
                answers.append(Answer(question_id=question.id, answer=chosen))
        else:
            text = str(form.get(field, "")).strip()
            if text:
                answers.append(Answer(question_id=question.id, answer=text))
    email = str(form.get("responded_email", "")).strip() or None

    if not answers:
        try:
            context = await _detail_context(store, survey, session)
        except Exception:
            return server_error(request, f"loading survey {survey_id}", session)
        context["error"] = "Please answer at least one question."
        return render(request, "survey_detail.html", context, status_code=status.HTTP_400_BAD_REQUEST)

    try:
        await crud_response.submit_response(
            store, ResponseCreate(survey_id=survey_id, answers=answers, responded_email=email)
        )
    except Exception:
        return server_error(request, f"submitting response to survey {survey_id}", session)
    return render(request, "thanks.html", {"session": session, "survey": survey})
