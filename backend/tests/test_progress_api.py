"""Progress tracking HTTP API tests."""

import json
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from clientdesk.main import app
from clientdesk.middleware.exceptions import database_exception_handler
from clientdesk.services.storage import ObjectStorage, get_storage


@pytest_asyncio.fixture
async def website_package(make_package, make_component, make_step):
    """Package "Website" with two components and a matching step for each."""
    package = await make_package("Website")
    await make_component("Homepage", package)
    await make_component("Contact Page", package)
    setup = await make_step("Website - Package Setup", important=True)
    homepage = await make_step("Homepage")
    contact = await make_step("Contact Page")
    return {"package": package, "setup": setup, "children": [homepage, contact]}


@pytest.mark.api
@pytest.mark.asyncio
class TestProgressStatus:
    """Client-level status and the step tree."""

    async def test_package_steps_count_toward_status(self, client: AsyncClient, test_client_row, website_package):
        """Setup step plus two component steps, none completed."""
        response = await client.get(f"/api/clients/{test_client_row.id}/progress/status")

        assert response.status_code == 200
        data = response.json()
        assert data["completed_steps"] == 0
        assert data["total_steps"] == 3
        assert data["percentage"] == 0

    async def test_completing_package_completes_children(self, client: AsyncClient, test_client_row, website_package):
        """Completing the setup step cascades the same date to both children."""
        setup_id = website_package["setup"].id

        response = await client.post(
            f"/api/progress/steps/{setup_id}/completion",
            json={"completed": True, "completed_date": "2024-06-01T00:00:00"},
        )
        assert response.status_code == 200
        assert len(response.json()["cascaded_ids"]) == 2

        tree = (await client.get(f"/api/clients/{test_client_row.id}/progress/steps")).json()
        package_node = tree[0]
        assert package_node["id"] == setup_id
        for node in [package_node, *package_node["children"]]:
            assert node["completed"] is True
            assert node["completed_date"].startswith("2024-06-01")

        status = (await client.get(f"/api/clients/{test_client_row.id}/progress/status")).json()
        assert status["percentage"] == 100

    async def test_overdue_standalone_step(self, client: AsyncClient, test_client_row, website_package, make_step):
        """A past-due loose step is a root node and counts as overdue."""
        loose = await make_step("Collect testimonials", deadline=datetime.utcnow() - timedelta(days=3))

        overview = (await client.get(f"/api/clients/{test_client_row.id}/progress/")).json()

        roots = overview["steps"]
        assert [r["id"] for r in roots][-1] == loose.id
        assert roots[-1]["is_package"] is False
        assert overview["status"]["overdue_count"] >= 1
        assert overview["status"]["has_overdue"] is True
        assert overview["packages"][0]["package_name"] == "Website"

    async def test_unknown_client_has_empty_progress(self, client: AsyncClient):
        response = await client.get("/api/clients/nobody/progress/status")

        assert response.status_code == 200
        assert response.json()["total_steps"] == 0
        assert response.json()["percentage"] == 0


@pytest.mark.api
@pytest.mark.asyncio
class TestStepEndpoints:
    """Step create / read / update / delete and milestones."""

    async def test_create_step(self, client: AsyncClient, test_client_row):
        response = await client.post(
            f"/api/clients/{test_client_row.id}/progress/steps",
            json={"title": "Kickoff call", "deadline": "2026-05-01T10:00:00"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Kickoff call"
        assert data["completed"] is False
        assert data["comments"] == []

    async def test_create_step_requires_title(self, client: AsyncClient, test_client_row):
        response = await client.post(
            f"/api/clients/{test_client_row.id}/progress/steps",
            json={"title": "  ", "deadline": "2026-05-01T10:00:00"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_missing_step_is_404(self, client: AsyncClient):
        response = await client.get("/api/progress/steps/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_update_and_delete_step(self, client: AsyncClient, make_step):
        step = await make_step("Kickoff call")

        response = await client.patch(f"/api/progress/steps/{step.id}", json={"title": "Kickoff meeting"})
        assert response.status_code == 200
        assert response.json()["title"] == "Kickoff meeting"

        response = await client.delete(f"/api/progress/steps/{step.id}")
        assert response.status_code == 204
        assert (await client.get(f"/api/progress/steps/{step.id}")).status_code == 404

    async def test_null_importance_rejected(self, client: AsyncClient, make_step):
        step = await make_step("Kickoff call", important=True)

        response = await client.patch(f"/api/progress/steps/{step.id}", json={"important": None})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any("important" in e["field"] for e in error["details"]["errors"])
        assert (await client.get(f"/api/progress/steps/{step.id}")).json()["important"] is True

    async def test_update_one_milestone_deadline(self, client: AsyncClient, make_step):
        """Only the first-draft deadline changes."""
        onboarding = datetime(2024, 7, 1)
        second = datetime(2024, 9, 1)
        step = await make_step(
            "Website - Package Setup",
            onboarding_deadline=onboarding,
            first_draft_deadline=datetime(2024, 8, 1),
            second_draft_deadline=second,
        )

        response = await client.patch(
            f"/api/progress/steps/{step.id}/milestones/firstDraft",
            json={"deadline": "2024-08-15"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["first_draft_deadline"].startswith("2024-08-15")
        assert data["first_draft_completed"] is False
        assert data["onboarding_deadline"].startswith("2024-07-01")
        assert data["second_draft_deadline"].startswith("2024-09-01")

    async def test_bad_milestone_date(self, client: AsyncClient, make_step):
        step = await make_step("Website - Package Setup")

        response = await client.patch(
            f"/api/progress/steps/{step.id}/milestones/onboarding",
            json={"deadline": "someday"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "deadline"

    async def test_unknown_milestone(self, client: AsyncClient, make_step):
        step = await make_step("Website - Package Setup")

        response = await client.patch(
            f"/api/progress/steps/{step.id}/milestones/launch",
            json={"completed": True},
        )

        assert response.status_code == 422

    async def test_virtual_package_node_cannot_be_completed(self, client: AsyncClient):
        response = await client.post(
            "/api/progress/steps/virtual-some-package/completion",
            json={"completed": True},
        )

        assert response.status_code == 422

    async def test_sync_creates_missing_steps(self, client: AsyncClient, test_client_row, make_package, make_component):
        package = await make_package("Gold")
        await make_component("Logo Design", package)

        response = await client.post(f"/api/clients/{test_client_row.id}/progress/sync")
        assert response.status_code == 200
        assert sorted(s["title"] for s in response.json()["created"]) == ["Gold - Package Setup", "Logo Design"]

        again = await client.post(f"/api/clients/{test_client_row.id}/progress/sync")
        assert again.json()["created"] == []

    async def test_backfill_links(self, client: AsyncClient, test_client_row, website_package):
        response = await client.post(f"/api/clients/{test_client_row.id}/progress/backfill-links")

        assert response.status_code == 200
        assert response.json() == {"linked_packages": 1, "linked_components": 2}


@pytest.mark.api
@pytest.mark.asyncio
class TestAnnotationEndpoints:
    """Comments, files, links and upload targets."""

    async def test_comment_with_attachment_only(self, client: AsyncClient, make_step):
        step = await make_step("Homepage")

        response = await client.post(
            f"/api/progress/steps/{step.id}/comments",
            json={
                "username": "amy",
                "attachment_url": "https://agency-files.sfo3.digitaloceanspaces.com/abc-mock.png",
                "attachment_type": "image/png",
            },
        )

        assert response.status_code == 201
        assert response.json()["text"] == ""

        listed = await client.get(f"/api/progress/steps/{step.id}/comments")
        assert len(listed.json()) == 1

    async def test_empty_comment_rejected(self, client: AsyncClient, make_step):
        step = await make_step("Homepage")

        response = await client.post(
            f"/api/progress/steps/{step.id}/comments",
            json={"username": "amy", "text": ""},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_files_and_links(self, client: AsyncClient, test_client_row):
        base = f"/api/clients/{test_client_row.id}"

        created = await client.post(f"{base}/files", json={
            "file_name": "brief.pdf",
            "file_url": "https://agency-files.sfo3.digitaloceanspaces.com/abc-brief.pdf",
            "file_type": "application/pdf",
        })
        assert created.status_code == 201

        link = await client.post(f"{base}/links", json={
            "title": "Shared drive",
            "url": "https://drive.example.com/folder",
            "created_by": "client",
        })
        assert link.status_code == 201
        assert link.json()["created_by"] == "client"

        assert len((await client.get(f"{base}/files")).json()) == 1
        assert len((await client.get(f"{base}/links")).json()) == 1

        deleted = await client.delete(f"{base}/links/{link.json()['id']}")
        assert deleted.status_code == 204
        missing = await client.delete(f"{base}/links/{link.json()['id']}")
        assert missing.status_code == 404

    async def test_upload_target(self, client: AsyncClient):
        storage = ObjectStorage(
            bucket="agency-files",
            endpoint="https://sfo3.digitaloceanspaces.com",
            region="us-east-1",
            access_key="test-access-key",
            secret_key="test-secret-key",
        )
        app.dependency_overrides[get_storage] = lambda: storage

        response = await client.post(
            "/api/uploads/target",
            json={"file_name": "brief.pdf", "content_type": "application/pdf"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["key"].endswith("-brief.pdf")
        assert data["public_url"].endswith(data["key"])

    async def test_upload_target_unconfigured(self, client: AsyncClient):
        app.dependency_overrides[get_storage] = lambda: ObjectStorage(bucket="", access_key="", secret_key="")

        response = await client.post(
            "/api/uploads/target",
            json={"file_name": "brief.pdf", "content_type": "application/pdf"},
        )

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "COLLABORATOR_UNAVAILABLE"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_integrity_error_envelope():
    request = Request({
        "type": "http",
        "method": "POST",
        "path": "/api/progress/steps/abc/comments",
        "headers": [],
        "query_string": b"",
    })
    exc = IntegrityError("INSERT INTO progress_step_comments", {}, Exception("constraint failed"))

    response = await database_exception_handler(request, exc)

    assert response.status_code == 422
    assert json.loads(response.body)["error"]["code"] == "INTEGRITY_ERROR"


@pytest.mark.api
@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
