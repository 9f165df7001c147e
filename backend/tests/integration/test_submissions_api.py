"""Integration tests for the module submission workflow."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from modhub_database.models import Module, Release


class TestSubmitModule:
    """Test POST /api/modules/submit."""

    @pytest.mark.asyncio
    async def test_submit_success(
        self, client: AsyncClient, auth_headers, db_session, test_user, fake_turnstile, submission_payload
    ):
        """A valid submission creates a pending, unpublished module."""
        response = await client.post("/api/modules/submit", json=submission_payload(), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["pending"] is True
        assert data["slug"] == "droid-dev-battery-saver"

        module = await db_session.get(Module, data["id"])
        assert module.is_published is False
        assert module.status == "pending"
        assert module.submitted_by == test_user.id
        assert module.compatibility == {"android_versions": ["12+", "13+"], "root_methods": ["Magisk", "KernelSU"]}
        assert fake_turnstile.calls[0][0] == "valid-token"

    @pytest.mark.asyncio
    async def test_submit_with_release(self, client: AsyncClient, auth_headers, db_session, submission_payload):
        """A release attached to the submission becomes the latest release."""
        payload = submission_payload()
        payload["release"] = {
            "version": "v2.0.1",
            "downloadUrl": "https://github.com/droid-dev/battery-saver/releases/download/v2.0.1/module.zip",
            "size": "1.2 MB",
            "isLatest": False,
        }

        response = await client.post("/api/modules/submit", json=payload, headers=auth_headers)

        assert response.status_code == 201
        result = await db_session.execute(select(Release).where(Release.module_id == response.json()["id"]))
        releases = result.scalars().all()
        assert [(r.version, r.is_latest) for r in releases] == [("2.0.1", True)]

    @pytest.mark.asyncio
    async def test_submit_requires_auth(self, client: AsyncClient, submission_payload):
        """Anonymous submissions are rejected."""
        response = await client.post("/api/modules/submit", json=submission_payload())

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_submit_missing_captcha(self, client: AsyncClient, auth_headers, submission_payload):
        """A missing captcha token is a 400 flagged as a captcha error."""
        payload = submission_payload()
        del payload["turnstileToken"]

        response = await client.post("/api/modules/submit", json=payload, headers=auth_headers)

        assert response.status_code == 400
        data = response.json()
        assert data["captcha_error"] is True
        assert data["error"] == "Invalid or missing Turnstile token"

    @pytest.mark.asyncio
    async def test_submit_rate_limited(self, client: AsyncClient, auth_headers, submission_payload):
        """The sixth attempt within the window is rejected with its reset time."""
        payload = submission_payload()
        payload["turnstileToken"] = ""
        for _ in range(5):
            response = await client.post("/api/modules/submit", json=payload, headers=auth_headers)
            assert response.status_code == 400

        response = await client.post("/api/modules/submit", json=payload, headers=auth_headers)

        assert response.status_code == 429
        data = response.json()
        assert data["error"].startswith("Rate limit exceeded")
        assert "reset_at" in data

    @pytest.mark.asyncio
    async def test_submit_duplicate_name(self, client: AsyncClient, auth_headers, submission_payload):
        """Resubmitting the same name within 24 hours conflicts."""
        first = await client.post("/api/modules/submit", json=submission_payload(), headers=auth_headers)

        second = await client.post("/api/modules/submit", json=submission_payload(), headers=auth_headers)

        assert second.status_code == 409
        assert second.json()["existing_id"] == first.json()["id"]

    @pytest.mark.asyncio
    async def test_slug_conflict_gets_suffix(
        self, client: AsyncClient, auth_headers, module_factory, submission_payload
    ):
        """A taken slug is resolved with a numeric suffix."""
        await module_factory(name="Battery Saver", author="droid-dev", slug="droid-dev-battery-saver")

        response = await client.post("/api/modules/submit", json=submission_payload(), headers=auth_headers)

        assert response.json()["slug"] == "droid-dev-battery-saver-1"


class TestSubmissionValidation:
    """Field-scoped validation of submissions."""

    @pytest.mark.asyncio
    async def test_name_too_short(self, client: AsyncClient, auth_headers, submission_payload):
        """Two characters is below the minimum name length."""
        response = await client.post("/api/modules/submit", json=submission_payload(name="ab"), headers=auth_headers)

        assert response.status_code == 400
        data = response.json()
        assert data["errors"] == [{"field": "module.name", "message": "Module name must be at least 3 characters"}]
        assert data["message"] == "Module name must be at least 3 characters"

    @pytest.mark.asyncio
    async def test_name_minimum_length_accepted(self, client: AsyncClient, auth_headers, submission_payload):
        """Three characters is accepted."""
        response = await client.post("/api/modules/submit", json=submission_payload(name="abc"), headers=auth_headers)

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_open_source_requires_source_url(self, client: AsyncClient, auth_headers, submission_payload):
        """Open source modules must link their source."""
        response = await client.post(
            "/api/modules/submit", json=submission_payload(sourceUrl=None), headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["message"] == "Source URL is required for open source modules"

    @pytest.mark.asyncio
    async def test_invalid_root_method(self, client: AsyncClient, auth_headers, submission_payload):
        """Unknown root methods are rejected."""
        payload = submission_payload(compatibility={"androidVersions": ["12+"], "rootMethods": ["SuperSU"]})

        response = await client.post("/api/modules/submit", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "module.compatibility.rootMethods"


class TestMySubmissions:
    """Test GET /api/modules/my-submissions and PATCH /api/modules/update/{id}."""

    @pytest.mark.asyncio
    async def test_lists_only_own_submissions(
        self, client: AsyncClient, auth_headers, module_factory, test_user, other_user
    ):
        """Submissions of other users are not listed."""
        mine = await module_factory(is_published=False, status="pending", submitted_by=test_user.id)
        await module_factory(submitted_by=other_user.id)

        response = await client.get("/api/modules/my-submissions", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == mine.id
        assert data["items"][0]["review_notes"] == []

    @pytest.mark.asyncio
    async def test_edit_pending_submission(self, client: AsyncClient, auth_headers, module_factory, test_user):
        """Owners can edit unpublished submissions."""
        module = await module_factory(is_published=False, status="declined", submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}",
            json={"shortDescription": "A much better short description"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["short_description"] == "A much better short description"
        assert response.json()["status"] == "declined"

    @pytest.mark.asyncio
    async def test_cannot_edit_published_without_resubmit(
        self, client: AsyncClient, auth_headers, module_factory, test_user
    ):
        """Published modules cannot be edited in place."""
        module = await module_factory(submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}", json={"name": "Renamed Module"}, headers=auth_headers
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Cannot edit published modules"

    @pytest.mark.asyncio
    async def test_resubmit_published_module(self, client: AsyncClient, auth_headers, module_factory, test_user):
        """Resetting status to pending unpublishes the module for review."""
        module = await module_factory(submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}",
            json={"name": "Renamed Module", "status": "pending", "turnstileToken": "valid-token"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed Module"
        assert data["status"] == "pending"
        assert data["is_published"] is False

    @pytest.mark.asyncio
    async def test_resubmit_requires_captcha(self, client: AsyncClient, auth_headers, module_factory, test_user):
        """Resubmission without a captcha token is rejected."""
        module = await module_factory(submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}", json={"status": "pending"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["captcha_error"] is True

    @pytest.mark.asyncio
    async def test_cannot_edit_other_users_module(
        self, client: AsyncClient, auth_headers, module_factory, other_user
    ):
        """Modules of other users look missing."""
        module = await module_factory(is_published=False, status="pending", submitted_by=other_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}", json={"name": "Hijacked"}, headers=auth_headers
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "description", "isOpenSource", "features", "compatibility"])
    async def test_null_required_field_rejected(
        self, client: AsyncClient, auth_headers, module_factory, test_user, field
    ):
        """Explicit nulls for required fields are validation errors, not cleared columns."""
        module = await module_factory(is_published=False, status="declined", submitted_by=test_user.id)

        response = await client.patch(f"/api/modules/update/{module.id}", json={field: None}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == field
        assert response.json()["errors"][0]["message"].endswith("cannot be null")

    @pytest.mark.asyncio
    async def test_open_source_edit_requires_source_url(
        self, client: AsyncClient, auth_headers, module_factory, test_user, db_session
    ):
        """Marking a module without a source URL as open source is rejected."""
        module = await module_factory(is_published=False, status="declined", submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}", json={"isOpenSource": True}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Source URL is required for open source modules"
        await db_session.refresh(module)
        assert module.is_open_source is False

    @pytest.mark.asyncio
    async def test_open_source_edit_with_source_url(
        self, client: AsyncClient, auth_headers, module_factory, test_user
    ):
        """The rule is checked against the module as edited."""
        module = await module_factory(is_published=False, status="declined", submitted_by=test_user.id)

        response = await client.patch(
            f"/api/modules/update/{module.id}",
            json={"isOpenSource": True, "sourceUrl": "https://github.com/tester/mod"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["is_open_source"] is True
