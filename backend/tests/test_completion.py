"""Step store, milestone and completion cascade tests."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.middleware.exceptions import (
    CollaboratorUnavailable,
    InvalidInputError,
    PartialCascadeFailure,
    ResourceNotFoundError,
)
from clientdesk.services.completion import CascadePolicy, set_step_completion
from clientdesk.services.deadlines import set_milestone_completion, update_milestone_deadline
from clientdesk.services.progress_status import compute_status
from clientdesk.services.step_store import StepStore

T0 = datetime(2026, 3, 1, 9, 0, 0)


class FlakyStepStore(StepStore):
    """Step store whose updates fail for selected step ids."""

    def __init__(self, db: AsyncSession, failing: set[str]):
        super().__init__(db)
        self.failing = failing

    async def update_step(self, step_id, fields):
        if step_id in self.failing:
            raise OperationalError("UPDATE progress_steps", {}, Exception("connection reset"))
        return await super().update_step(step_id, fields)


class UnreachableStepStore(StepStore):
    async def list_steps(self, client_id):
        raise OperationalError("SELECT progress_steps", {}, Exception("could not connect"))


class ComponentsUnreachableStepStore(StepStore):
    async def list_components(self, client_id):
        raise OperationalError("SELECT components", {}, Exception("could not connect"))


@pytest.fixture
def gold_package(make_package, make_component, make_step):
    """Gold package: setup step plus two component steps."""

    async def _build():
        package = await make_package("Gold")
        logo = await make_component("Logo Design", package)
        web = await make_component("Website Build", package)
        setup = await make_step("Gold - Package Setup", important=True)
        logo_step = await make_step("Logo Design")
        web_step = await make_step("Website Build", component_id=web.id)
        return package, (logo, web), setup, (logo_step, web_step)

    return _build


@pytest.mark.asyncio
class TestStepStore:

    async def test_create_requires_title_and_deadline(self, db_session, test_client_row):
        store = StepStore(db_session)
        with pytest.raises(InvalidInputError):
            await store.create_step(test_client_row.id, title="  ", deadline=T0)
        with pytest.raises(InvalidInputError):
            await store.create_step(test_client_row.id, title="Kickoff", deadline=None)

    async def test_create_for_unknown_client(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await StepStore(db_session).create_step("nope", title="Kickoff", deadline=T0)

    async def test_update_clears_date_when_reopened(self, db_session, make_step):
        step = await make_step("Kickoff", completed=True)
        store = StepStore(db_session)

        updated = await store.update_step(step.id, {"completed": False})

        assert updated.completed is False
        assert updated.completed_date is None

    async def test_completed_date_requires_completed(self, db_session, make_step):
        step = await make_step("Kickoff")
        with pytest.raises(InvalidInputError):
            await StepStore(db_session).update_step(step.id, {"completed_date": T0})

    async def test_unknown_field_rejected(self, db_session, make_step):
        step = await make_step("Kickoff")
        with pytest.raises(InvalidInputError):
            await StepStore(db_session).update_step(step.id, {"client_id": "other"})

    async def test_virtual_id_is_not_a_stored_step(self, db_session):
        with pytest.raises(InvalidInputError):
            await StepStore(db_session).get_step("virtual-p-gold")

    async def test_missing_step(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await StepStore(db_session).get_step("missing")

    async def test_snapshot_degrades_to_empty_when_store_unreachable(self, db_session, make_step, test_client_row):
        await make_step("Kickoff")

        snapshot = await UnreachableStepStore(db_session).load_snapshot(test_client_row.id)

        assert snapshot.steps == []
        status = compute_status(snapshot.steps)
        assert status.total_steps == 0
        assert status.percentage == 0


@pytest.mark.asyncio
class TestMilestoneUpdates:

    async def test_update_one_milestone_leaves_others(self, db_session, make_step):
        step = await make_step(
            "Gold - Package Setup",
            onboarding_deadline=T0 + timedelta(days=7),
            first_draft_deadline=T0 + timedelta(days=14),
        )
        store = StepStore(db_session)

        updated = await update_milestone_deadline(store, step.id, "firstDraft", "2026-04-15")

        assert updated.first_draft_deadline.date().isoformat() == "2026-04-15"
        assert updated.onboarding_deadline == T0 + timedelta(days=7)

    async def test_unparseable_date_rejected(self, db_session, make_step):
        step = await make_step("Gold - Package Setup", onboarding_deadline=T0)
        store = StepStore(db_session)

        with pytest.raises(InvalidInputError):
            await update_milestone_deadline(store, step.id, "onboarding", "next tuesday")

        reloaded = await store.get_step(step.id)
        assert reloaded.onboarding_deadline == T0

    async def test_past_date_accepted_and_logged(self, db_session, make_step, caplog):
        step = await make_step("Gold - Package Setup")
        store = StepStore(db_session)

        with caplog.at_level("WARNING", logger="clientdesk.deadlines"):
            updated = await update_milestone_deadline(store, step.id, "onboarding", "2020-01-01")

        assert updated.onboarding_deadline.year == 2020
        assert "past deadline" in caplog.text

    async def test_virtual_node_rejected(self, db_session):
        with pytest.raises(InvalidInputError):
            await update_milestone_deadline(StepStore(db_session), "virtual-p-1", "onboarding", "2026-05-01")

    async def test_milestone_completion_round_trip(self, db_session, make_step):
        step = await make_step("Gold - Package Setup")
        store = StepStore(db_session)

        done = await set_milestone_completion(store, step.id, "onboarding", True)
        assert done.onboarding_completed is True
        assert done.onboarding_completed_date is not None
        assert done.completed is False

        reopened = await set_milestone_completion(store, step.id, "onboarding", False)
        assert reopened.onboarding_completed is False
        assert reopened.onboarding_completed_date is None


@pytest.mark.asyncio
class TestCompletionCascade:

    async def test_package_completion_cascades_to_children(self, db_session, gold_package):
        _, _, setup, (logo_step, web_step) = await gold_package()
        store = StepStore(db_session)

        result = await set_step_completion(store, setup.id, True, completed_date=T0)

        assert result.step.completed is True
        assert sorted(result.cascaded_ids) == sorted([logo_step.id, web_step.id])
        for step_id in (logo_step.id, web_step.id):
            child = await store.get_step(step_id)
            assert child.completed is True
            assert child.completed_date == T0

    async def test_uncompleting_reverses_the_same_children(self, db_session, gold_package):
        _, _, setup, children = await gold_package()
        store = StepStore(db_session)
        await set_step_completion(store, setup.id, True)

        result = await set_step_completion(store, setup.id, False)

        assert sorted(result.cascaded_ids) == sorted(c.id for c in children)
        for child in children:
            reloaded = await store.get_step(child.id)
            assert reloaded.completed is False
            assert reloaded.completed_date is None

    async def test_child_completion_does_not_complete_package(self, db_session, gold_package):
        _, _, setup, children = await gold_package()
        store = StepStore(db_session)

        for child in children:
            result = await set_step_completion(store, child.id, True)
            assert result.cascaded_ids == []

        assert (await store.get_step(setup.id)).completed is False

    async def test_policy_none_disables_cascade(self, db_session, gold_package):
        _, _, setup, children = await gold_package()
        store = StepStore(db_session)

        result = await set_step_completion(store, setup.id, True, policy=CascadePolicy.NONE)

        assert result.cascaded_ids == []
        for child in children:
            assert (await store.get_step(child.id)).completed is False

    async def test_partial_failure_reports_failed_children(self, db_session, gold_package):
        _, _, setup, (logo_step, web_step) = await gold_package()
        # Rollback expires loaded rows, so keep plain ids.
        setup_id, logo_id, web_id = setup.id, logo_step.id, web_step.id
        store = FlakyStepStore(db_session, failing={web_id})

        with pytest.raises(PartialCascadeFailure) as exc_info:
            await set_step_completion(store, setup_id, True)

        assert exc_info.value.failed_ids == [web_id]
        assert exc_info.value.updated_ids == [logo_id]

        reader = StepStore(db_session)
        assert (await reader.get_step(setup_id)).completed is True
        assert (await reader.get_step(logo_id)).completed is True
        assert (await reader.get_step(web_id)).completed is False

    async def test_unreadable_children_are_reported_not_skipped(self, db_session, gold_package):
        _, _, setup, (logo_step, web_step) = await gold_package()
        setup_id, child_ids = setup.id, [logo_step.id, web_step.id]
        store = ComponentsUnreachableStepStore(db_session)

        with pytest.raises(CollaboratorUnavailable):
            await set_step_completion(store, setup_id, True)

        reader = StepStore(db_session)
        assert (await reader.get_step(setup_id)).completed is True
        for child_id in child_ids:
            assert (await reader.get_step(child_id)).completed is False

    async def test_virtual_node_cannot_be_completed(self, db_session):
        with pytest.raises(InvalidInputError):
            await set_step_completion(StepStore(db_session), "virtual-p-gold", True)

    async def test_completion_is_idempotent(self, db_session, make_step):
        step = await make_step("Kickoff")
        store = StepStore(db_session)

        first = await set_step_completion(store, step.id, True, completed_date=T0)
        second = await set_step_completion(store, step.id, True, completed_date=T0)

        assert first.step.completed_date == second.step.completed_date == T0
