"""Child assessment pages."""

from dataclasses import replace

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from app.api.deps import CurrentContext, DbSession
from app.api.forms import parse_bracketed_form
from app.api.responses import ALREADY_SUBMITTED, error_page, error_status, html_page
from app.assessment.validation import MissingAnswer
from app.rendering.child_form import render_child_form
from app.rendering.pages import render_child_instance_list, render_message, render_messages
from app.rendering.summary import render_child_summary
from app.schemas.assessment import DraftSaveResponse
from app.services.activity import ActivityResolver
from app.services.child_assessment import ChildAssessmentService, ChildAssessmentView
from app.services.errors import (
    AssessmentAlreadySubmittedError,
    AssessmentError,
    AssessmentValidationError,
)
from app.services.submission import SaveAction

router = APIRouter()

TITLE = "Child Assessment"
NO_ROSTER = (
    "No children are currently assigned to this classroom. "
    "Please contact your track administrator."
)


def _action(value: object) -> SaveAction:
    return SaveAction.SUBMIT if value == SaveAction.SUBMIT.value else SaveAction.DRAFT


def _render(
    request: Request,
    view: ChildAssessmentView,
    messages: list[tuple[str, str]] | None = None,
    missing: list[MissingAnswer] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    header = replace(
        view.header,
        draft_url=str(request.url_for("save_child_draft", instance_id=view.instance.id)),
    )
    notices = render_messages(messages or [])

    if view.submitted:
        body = render_child_summary(header, view.summary_groups, view.instance.submitted_at, notices)
    elif not any(group.subjects for group in view.groups):
        body = notices + render_message(NO_ROSTER, "warning")
    else:
        body = render_child_form(header, view.groups, view.rows, messages=notices, missing=missing or [])
    return html_page(header.title or TITLE, body, status_code)


@router.get("", response_class=HTMLResponse, name="list_child_assessments")
async def list_child_assessments(
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    """List the caller's child assessment instances."""
    items = await ChildAssessmentService(session).list_instances(
        ctx,
        lambda instance_id: str(request.url_for("view_child_assessment", instance_id=instance_id)),
    )
    return html_page("My Child Assessments", render_child_instance_list(items))


@router.get("/activity/{activity_id}", name="open_child_activity")
async def open_child_activity(
    activity_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> Response:
    """Resolve (or create) the instance behind an activity and redirect to it."""
    try:
        binding = await ActivityResolver(session).resolve_child_activity(activity_id, ctx)
    except AssessmentError as exc:
        return error_page(exc, TITLE)
    return RedirectResponse(
        str(request.url_for("view_child_assessment", instance_id=binding.instance_id)),
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/{instance_id}", response_class=HTMLResponse, name="view_child_assessment")
async def view_child_assessment(
    instance_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    """Show the form, or the summary once submitted."""
    try:
        view = await ChildAssessmentService(session).load(instance_id, ctx)
    except AssessmentError as exc:
        return error_page(exc, TITLE)
    return _render(request, view)


@router.post("/{instance_id}", response_class=HTMLResponse, name="save_child_assessment")
async def save_child_assessment(
    instance_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    """Save a draft or submit, then show the resulting page."""
    form = parse_bracketed_form((await request.form()).multi_items())
    ctx = ctx.with_form("POST", form)
    service = ChildAssessmentService(session)

    messages: list[tuple[str, str]] = []
    missing: list[MissingAnswer] = []
    status_code = status.HTTP_200_OK
    try:
        result = await service.submissions.save_child(
            instance_id,
            form.get("answers", {}),
            _action(form.get("hl_assessment_action")),
            ctx,
        )
        messages.append(("success", result.message))
    except AssessmentValidationError as exc:
        missing = exc.missing
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    except AssessmentAlreadySubmittedError:
        messages.append(("warning", ALREADY_SUBMITTED))
        status_code = status.HTTP_409_CONFLICT
    except AssessmentError as exc:
        return error_page(exc, TITLE)

    try:
        view = await service.load(instance_id, ctx)
    except AssessmentError as exc:
        return error_page(exc, TITLE)
    return _render(request, view, messages, missing, status_code)


@router.post("/{instance_id}/draft", response_model=DraftSaveResponse, name="save_child_draft")
async def save_child_draft(
    instance_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> DraftSaveResponse | JSONResponse:
    """Autosave used before leaving the page."""
    form = parse_bracketed_form((await request.form()).multi_items())
    ctx = ctx.with_form("POST", form)
    try:
        result = await ChildAssessmentService(session).submissions.save_child(
            instance_id, form.get("answers", {}), SaveAction.DRAFT, ctx
        )
    except AssessmentError as exc:
        status_code, message = error_status(exc)
        return JSONResponse(
            status_code=status_code,
            content=DraftSaveResponse(success=False, message=message).model_dump(),
        )
    return DraftSaveResponse(success=True, message="Draft saved.", status=result.status.value)
