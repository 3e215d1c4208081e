"""
Concurrency tests for GRN transitions.

Two sessions stand in for two users acting on the same GRN.  The scenarios
are simulated sequentially: the second user read the GRN before the first
user's commit and acts after it.

Run with: pytest tests/concurrency/test_grn_approval_race.py -v
Skip with: pytest -m "not slow_locks"
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.exceptions import InvalidGRNTransitionError, OverReceiptBlockedError
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_modules.matching.settings import MatchingSettingsService
from stock_modules.procurement.models import GRNItemInput, GRNStatus
from stock_modules.procurement.orm import GoodsReceivedNoteModel, PurchaseOrderLineModel
from stock_modules.procurement.service import GRNService

pytestmark = pytest.mark.slow_locks


def service_for(session, clock) -> GRNService:
    return GRNService(
        session,
        clock=clock,
        settings_service=MatchingSettingsService(session, clock=clock),
    )


@pytest.fixture
def pending_grn(grn_service, purchase_order, test_actor_id):
    line = purchase_order.lines[0]
    grn = grn_service.create_draft(
        purchase_order_id=purchase_order.id,
        warehouse_id="W1",
        items=[GRNItemInput(line.id, Decimal("60"), Decimal("60"), batch_number="B1")],
        actor_id=test_actor_id,
    )
    return grn_service.submit(grn.id, test_actor_id)


class TestApprovalRace:

    def test_second_approver_loses(
        self, session, session_factory, deterministic_clock, pending_grn, purchase_order,
        test_actor_id,
    ):
        alice = service_for(session_factory(), deterministic_clock)
        bob = service_for(session_factory(), deterministic_clock)
        assert bob.get_grn(pending_grn.id).status is GRNStatus.PENDING_APPROVAL

        alice.approve(pending_grn.id, test_actor_id)
        with pytest.raises(InvalidGRNTransitionError) as exc_info:
            bob.approve(pending_grn.id, test_actor_id)

        assert exc_info.value.from_state == GRNStatus.APPROVED.value
        session.expire_all()
        assert len(InventorySelector(session).events_for_grn(pending_grn.id)) == 1
        line = session.get(PurchaseOrderLineModel, purchase_order.lines[0].id)
        assert line.quantity_received == Decimal("60")

    def test_reject_after_approve_loses(
        self, session_factory, deterministic_clock, pending_grn, test_actor_id,
    ):
        approver = service_for(session_factory(), deterministic_clock)
        rejecter = service_for(session_factory(), deterministic_clock)

        approver.approve(pending_grn.id, test_actor_id)

        with pytest.raises(InvalidGRNTransitionError):
            rejecter.reject(pending_grn.id, test_actor_id, "wrong vendor")
        assert rejecter.get_grn(pending_grn.id).status is GRNStatus.APPROVED

    def test_stale_row_write_refused(
        self, session_factory, deterministic_clock, pending_grn, test_actor_id,
    ):
        """A writer holding a pre-approval copy cannot overwrite the approved row."""
        stale_session = session_factory()
        stale = stale_session.execute(
            select(GoodsReceivedNoteModel).where(GoodsReceivedNoteModel.id == pending_grn.id)
        ).scalar_one()
        version_seen = stale.version

        service_for(session_factory(), deterministic_clock).approve(pending_grn.id, test_actor_id)

        stale.status = GRNStatus.CANCELLED.value
        with pytest.raises(StaleDataError):
            stale_session.flush()
        stale_session.rollback()

        fresh = service_for(session_factory(), deterministic_clock).get_grn(pending_grn.id)
        assert fresh.status is GRNStatus.APPROVED
        assert fresh.version > version_seen


class TestCompetingReceipts:

    def test_two_grns_for_same_pending_quantity(
        self, grn_service, purchase_order, test_actor_id,
    ):
        """Both drafted against 100 pending; only one can be approved."""
        line = purchase_order.lines[0]
        first, second = (
            grn_service.submit(
                grn_service.create_draft(
                    purchase_order_id=purchase_order.id,
                    warehouse_id="W1",
                    items=[GRNItemInput(line.id, Decimal("80"), Decimal("80"))],
                    actor_id=test_actor_id,
                ).id,
                test_actor_id,
            )
            for _ in range(2)
        )

        grn_service.approve(first.id, test_actor_id)

        with pytest.raises(OverReceiptBlockedError):
            grn_service.approve(second.id, test_actor_id)
        assert grn_service.get_grn(second.id).status is GRNStatus.PENDING_APPROVAL


class TestInterleavedApproval:
    """The second approver read the GRN as pending; the first commits before it writes."""

    @pytest.fixture(autouse=True)
    def _sqlite_only(self, session):
        if session.get_bind().dialect.name != "sqlite":
            pytest.skip("the GRN row lock makes the second approver wait instead")

    def approve_after_rival(self, bob, rival, grn_id, actor_id):
        read_pending = bob._find_transition

        def rival_commits_first(grn, action):
            transition = read_pending(grn, action)
            rival.approve(grn_id, actor_id)
            return transition

        with patch.object(bob, "_find_transition", side_effect=rival_commits_first):
            bob.approve(grn_id, actor_id)

    def test_loser_sees_invalid_transition(
        self, session, session_factory, deterministic_clock, pending_grn, purchase_order,
        test_actor_id,
    ):
        alice = service_for(session_factory(), deterministic_clock)
        bob = service_for(session_factory(), deterministic_clock)

        with pytest.raises(InvalidGRNTransitionError) as exc_info:
            self.approve_after_rival(bob, alice, pending_grn.id, test_actor_id)

        assert exc_info.value.action == "approve"
        session.expire_all()
        assert len(InventorySelector(session).events_for_grn(pending_grn.id)) == 1
        line = session.get(PurchaseOrderLineModel, purchase_order.lines[0].id)
        assert line.quantity_received == Decimal("60")
        assert bob.get_grn(pending_grn.id).status is GRNStatus.APPROVED

    def test_loser_with_over_receipt_allowed_is_not_a_ledger_conflict(
        self, captured_logs, session, session_factory, deterministic_clock, settings_service,
        pending_grn, test_actor_id,
    ):
        current = settings_service.get()
        settings_service.update({"allow_over_receipt": True}, current.version, test_actor_id)
        alice = service_for(session_factory(), deterministic_clock)
        bob = service_for(session_factory(), deterministic_clock)

        with pytest.raises(InvalidGRNTransitionError):
            self.approve_after_rival(bob, alice, pending_grn.id, test_actor_id)

        records = captured_logs()
        assert not [r for r in records if r["level"] == "CRITICAL"]
        assert "grn_transition_lost_race" in [r["message"] for r in records]
        session.expire_all()
        assert len(InventorySelector(session).events_for_grn(pending_grn.id)) == 1
