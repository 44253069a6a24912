"""HTTP tests for the child and teacher assessment pages."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.responses import ALREADY_SUBMITTED, FORBIDDEN, INCOMPLETE, NOT_FOUND
from app.core.security import create_access_token
from app.models.assessment import ChildAssessmentInstance, TeacherAssessmentInstance
from app.models.program import Activity, ActivityType
from tests.conftest import TEACHER_USER_ID

CHILD_URL = "/api/v1/child-assessments"
TEACHER_URL = "/api/v1/teacher-assessments"


def child_form(roster, action: str, answered: tuple[str, ...] = ("Ana", "Bo", "Cy")) -> dict:
    data = {"hl_assessment_action": action}
    for name in answered:
        child, _ = roster[name]
        data[f"answers[{child.id}][q1]"] = "1"
        data[f"answers[{child.id}][q2]"] = "3"
    return data


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.get(CHILD_URL)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient) -> None:
        response = await client.get(CHILD_URL, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_numeric_subject(self, client: AsyncClient) -> None:
        token = create_access_token(subject="teacher@example.com")

        response = await client.get(CHILD_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cookie_token(self, client: AsyncClient, enrollment) -> None:
        client.cookies.set("access_token", create_access_token(subject=str(TEACHER_USER_ID)))

        response = await client.get(CHILD_URL)

        assert response.status_code == 200


class TestChildPages:
    """Tests for the child assessment pages."""

    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient, child_instance, auth_headers) -> None:
        response = await client.get(CHILD_URL, headers=auth_headers)

        assert response.status_code == 200
        assert "My Child Assessments" in response.text
        assert f"{CHILD_URL}/{child_instance.id}" in response.text
        assert "Fill Out" in response.text

    @pytest.mark.asyncio
    async def test_view_form(
        self, client: AsyncClient, child_instance, roster, auth_headers
    ) -> None:
        response = await client.get(f"{CHILD_URL}/{child_instance.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert f'id="hl-ca-form-{child_instance.id}"' in response.text
        assert f'{CHILD_URL}/{child_instance.id}/draft"' in response.text
        assert "Ana A." in response.text
        assert "Jane Teacher" in response.text

    @pytest.mark.asyncio
    async def test_view_without_roster(
        self, client: AsyncClient, child_instance, auth_headers
    ) -> None:
        response = await client.get(f"{CHILD_URL}/{child_instance.id}", headers=auth_headers)

        assert response.status_code == 200
        assert "No children are currently assigned to this classroom." in response.text
        assert "<form" not in response.text

    @pytest.mark.asyncio
    async def test_view_other_users_instance(
        self, client: AsyncClient, child_instance, other_auth_headers
    ) -> None:
        response = await client.get(
            f"{CHILD_URL}/{child_instance.id}", headers=other_auth_headers
        )

        assert response.status_code == 403
        assert FORBIDDEN in response.text

    @pytest.mark.asyncio
    async def test_view_unknown_instance(self, client: AsyncClient, auth_headers) -> None:
        response = await client.get(f"{CHILD_URL}/9999", headers=auth_headers)

        assert response.status_code == 404
        assert NOT_FOUND in response.text

    @pytest.mark.asyncio
    async def test_save_draft(
        self, client: AsyncClient, child_instance, roster, auth_headers
    ) -> None:
        response = await client.post(
            f"{CHILD_URL}/{child_instance.id}",
            data=child_form(roster, "draft", ("Ana",)),
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert "Draft saved successfully." in response.text
        ana, _ = roster["Ana"]
        tag = f'id="hl_{ana.id}_q1_1"'
        assert tag in response.text

    @pytest.mark.asyncio
    async def test_incomplete_submit(
        self, client: AsyncClient, child_instance, roster, auth_headers
    ) -> None:
        response = await client.post(
            f"{CHILD_URL}/{child_instance.id}",
            data=child_form(roster, "submit", ("Ana", "Bo")),
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert "The assessment was not submitted." in response.text
        cy, _ = roster["Cy"]
        assert "Cy C.: no answer for Shares feelings; Calms down" in response.text
        assert f'<a href="#hl-ca-row-{cy.id}" class="hl-ca-missing-jump">' in response.text
        assert "hl-ca-row-missing" in response.text

    @pytest.mark.asyncio
    async def test_submit_then_resubmit(
        self,
        client: AsyncClient,
        async_session: AsyncSession,
        child_instance,
        roster,
        auth_headers,
    ) -> None:
        url = f"{CHILD_URL}/{child_instance.id}"

        response = await client.post(url, data=child_form(roster, "submit"), headers=auth_headers)

        assert response.status_code == 200
        assert "Assessment submitted successfully." in response.text
        assert "Assessment submitted on" in response.text
        assert "<form" not in response.text

        response = await client.post(url, data=child_form(roster, "draft"), headers=auth_headers)

        assert response.status_code == 409
        assert ALREADY_SUBMITTED in response.text
        instance = await async_session.get(ChildAssessmentInstance, child_instance.id)
        assert instance.status == "submitted"

    @pytest.mark.asyncio
    async def test_autosave_endpoint(
        self, client: AsyncClient, child_instance, roster, auth_headers
    ) -> None:
        url = f"{CHILD_URL}/{child_instance.id}/draft"

        response = await client.post(url, data=child_form(roster, "draft", ("Ana",)), headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Draft saved.",
            "status": "in_progress",
        }

    @pytest.mark.asyncio
    async def test_autosave_after_submit(
        self, client: AsyncClient, child_instance, roster, auth_headers
    ) -> None:
        await client.post(
            f"{CHILD_URL}/{child_instance.id}",
            data=child_form(roster, "submit"),
            headers=auth_headers,
        )

        response = await client.post(
            f"{CHILD_URL}/{child_instance.id}/draft",
            data=child_form(roster, "draft"),
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["success"] is False
        assert response.json()["message"] == ALREADY_SUBMITTED

    @pytest.mark.asyncio
    async def test_open_activity_redirects(
        self,
        client: AsyncClient,
        async_session: AsyncSession,
        enrollment,
        child_activity,
        two_question_instrument,
        auth_headers,
    ) -> None:
        response = await client.get(
            f"{CHILD_URL}/activity/{child_activity.id}", headers=auth_headers
        )

        assert response.status_code == 303
        instance = (
            await async_session.execute(
                select(ChildAssessmentInstance).where(
                    ChildAssessmentInstance.activity_id == child_activity.id
                )
            )
        ).scalar_one()
        assert response.headers["location"].endswith(f"{CHILD_URL}/{instance.id}")

    @pytest.mark.asyncio
    async def test_open_unknown_activity(self, client: AsyncClient, enrollment, auth_headers) -> None:
        response = await client.get(f"{CHILD_URL}/activity/9999", headers=auth_headers)

        assert response.status_code == 404


class TestTeacherPages:
    """Tests for the self-assessment pages."""

    @pytest.mark.asyncio
    async def test_view_form(
        self, client: AsyncClient, teacher_pre_instance, auth_headers
    ) -> None:
        response = await client.get(
            f"{TEACHER_URL}/{teacher_pre_instance.id}", headers=auth_headers
        )

        assert response.status_code == 200
        assert f'id="hl-tsa-form-{teacher_pre_instance.id}"' in response.text
        assert "hl-tsa-phase-pre" in response.text

    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient, teacher_pre_instance, auth_headers) -> None:
        response = await client.get(TEACHER_URL, headers=auth_headers)

        assert response.status_code == 200
        assert "My Self-Assessments" in response.text
        assert f"{TEACHER_URL}/{teacher_pre_instance.id}" in response.text

    @pytest.mark.asyncio
    async def test_incomplete_submit_opens_first_gap(
        self, client: AsyncClient, teacher_pre_instance, auth_headers
    ) -> None:
        response = await client.post(
            f"{TEACHER_URL}/{teacher_pre_instance.id}",
            data={
                "hl_tsa_action": "submit",
                "resp[practice][routines]": "2",
                "resp[practice][feelings]": "2",
            },
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert INCOMPLETE in response.text
        assert 'data-start-step="1"' in response.text

    @pytest.mark.asyncio
    async def test_submit_renders_read_only(
        self,
        client: AsyncClient,
        async_session: AsyncSession,
        teacher_pre_instance,
        auth_headers,
    ) -> None:
        response = await client.post(
            f"{TEACHER_URL}/{teacher_pre_instance.id}",
            data={
                "hl_tsa_action": "submit",
                "resp[practice][routines]": "2",
                "resp[practice][feelings]": "4",
                "resp[confidence][overall]": "8",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert "Assessment submitted successfully." in response.text
        assert "<form" not in response.text
        instance = await async_session.get(TeacherAssessmentInstance, teacher_pre_instance.id)
        assert instance.status == "submitted"

    @pytest.mark.asyncio
    async def test_draft_by_default(
        self, client: AsyncClient, teacher_pre_instance, auth_headers
    ) -> None:
        response = await client.post(
            f"{TEACHER_URL}/{teacher_pre_instance.id}",
            data={"resp[practice][routines]": "2"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert "Draft saved successfully." in response.text

    @pytest.mark.asyncio
    async def test_other_user(
        self, client: AsyncClient, teacher_pre_instance, other_auth_headers
    ) -> None:
        response = await client.get(
            f"{TEACHER_URL}/{teacher_pre_instance.id}", headers=other_auth_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_open_activity_creates_instance(
        self,
        client: AsyncClient,
        async_session: AsyncSession,
        track,
        enrollment,
        teacher_instrument,
        auth_headers,
    ) -> None:
        activity = Activity(
            track_id=track.id,
            title="Self-Assessment (Post)",
            activity_type=ActivityType.TEACHER_SELF_ASSESSMENT,
            external_ref={"phase": "post"},
        )
        async_session.add(activity)
        await async_session.commit()

        response = await client.get(f"{TEACHER_URL}/activity/{activity.id}", headers=auth_headers)

        assert response.status_code == 303
        instance = (
            await async_session.execute(
                select(TeacherAssessmentInstance).where(
                    TeacherAssessmentInstance.activity_id == activity.id
                )
            )
        ).scalar_one()
        assert instance.phase == "post"
        assert instance.instrument_id == teacher_instrument.id
        assert response.headers["location"].endswith(f"{TEACHER_URL}/{instance.id}")
