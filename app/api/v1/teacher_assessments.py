"""Teacher self-assessment pages."""

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.api.deps import CurrentContext, DbSession
from app.api.forms import parse_bracketed_form
from app.api.responses import ALREADY_SUBMITTED, INCOMPLETE, error_page, html_page
from app.models.assessment import AssessmentPhase
from app.rendering.pages import render_messages, render_teacher_instance_list
from app.rendering.teacher_form import render_teacher_form
from app.services.activity import ActivityResolver
from app.services.errors import (
    AssessmentAlreadySubmittedError,
    AssessmentError,
    AssessmentValidationError,
)
from app.services.submission import SaveAction
from app.services.teacher_assessment import (
    TeacherAssessmentService,
    TeacherAssessmentView,
    first_missing_step,
)

router = APIRouter()

TITLE = "Teacher Self-Assessment"


def _render(
    view: TeacherAssessmentView,
    messages: list[tuple[str, str]] | None = None,
    start_step: int = 0,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    body = render_teacher_form(
        view.instrument,
        view.instance.id,
        AssessmentPhase(view.instance.phase).value,
        view.values,
        read_only=view.read_only,
        messages=render_messages(messages or []),
        start_step=start_step,
    )
    return html_page(view.instrument.name or TITLE, body, status_code)


@router.get("", response_class=HTMLResponse, name="list_teacher_assessments")
async def list_teacher_assessments(
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    """List the caller's self-assessments."""
    items = await TeacherAssessmentService(session).list_instances(
        ctx,
        lambda instance_id: str(request.url_for("view_teacher_assessment", instance_id=instance_id)),
    )
    return html_page("My Self-Assessments", render_teacher_instance_list(items))


@router.get("/activity/{activity_id}", name="open_teacher_activity")
async def open_teacher_activity(
    activity_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> Response:
    try:
        binding = await ActivityResolver(session).resolve_teacher_activity(activity_id, ctx)
    except AssessmentError as exc:
        return error_page(exc, TITLE)
    return RedirectResponse(
        str(request.url_for("view_teacher_assessment", instance_id=binding.instance_id)),
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/{instance_id}", response_class=HTMLResponse, name="view_teacher_assessment")
async def view_teacher_assessment(
    instance_id: int,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    try:
        view = await TeacherAssessmentService(session).load(instance_id, ctx)
    except AssessmentError as exc:
        return error_page(exc, TITLE)
    return _render(view)


@router.post("/{instance_id}", response_class=HTMLResponse, name="save_teacher_assessment")
async def save_teacher_assessment(
    instance_id: int,
    request: Request,
    session: DbSession,
    ctx: CurrentContext,
) -> HTMLResponse:
    """Save a draft or submit, then show the form again (read-only once submitted)."""
    form = parse_bracketed_form((await request.form()).multi_items())
    ctx = ctx.with_form("POST", form)
    service = TeacherAssessmentService(session)
    action = SaveAction.SUBMIT if form.get("hl_tsa_action") == SaveAction.SUBMIT.value else SaveAction.DRAFT

    messages: list[tuple[str, str]] = []
    missing = []
    status_code = status.HTTP_200_OK
    try:
        result = await service.submissions.save_teacher(instance_id, form.get("resp", {}), action, ctx)
        messages.append(("success", result.message))
    except AssessmentValidationError as exc:
        missing = exc.missing
        messages.append(("error", INCOMPLETE))
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
    return _render(view, messages, first_missing_step(view.instrument, missing), status_code)
