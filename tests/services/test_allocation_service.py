"""
Tests for AllocationService -- the transactional operation surface.

Covers:
- create_project / update_project_budget_or_dates / delete_project
- create_member / update_member_percentage / delete_member: amounts,
  schedules, the 100% cap, duplicate names
- mark_installment_paid / mark_month_paid / cancel_installment
- get_project_payment_status / get_allocation_summary / get_member_schedule
- Unit-of-work behavior: rollback on failure, audit dispatch after commit
- PRESERVE_PAID regeneration
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from allocation_kernel.domain.audit import AuditAction, EntityKind
from allocation_kernel.domain.dtos import AllocationStatus
from allocation_kernel.exceptions import (
    DuplicateMemberNameError,
    InstallmentNotFoundError,
    InvalidBudgetError,
    InvalidDateRangeError,
    InvalidMonthNumberError,
    InvalidPercentageError,
    MemberNotFoundError,
    PaidInstallmentConflictError,
    PercentageExceededError,
    ProjectNotFoundError,
)
from allocation_kernel.models.installment import InstallmentStatus
from allocation_kernel.models.project import ProjectStatus
from allocation_kernel.services.allocation_service import UNCHANGED
from allocation_kernel.services.recalculation_coordinator import RecalculationCoordinator


def _amounts(member_info):
    return [i.monthly_amount for i in member_info.installments]


def _statuses(installments):
    return [i.status for i in installments]


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------


class TestScenarios:

    def test_forty_percent_over_six_months(self, service, actor, create_project):
        """100000.00 at 40% over Jan-Jun 2024: 5 x 6666.66 + 6666.70."""
        project = create_project(
            total_budget=Decimal("100000.00"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 6, 30),
        )

        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)

        assert member.calculated_amount == Decimal("40000.00")
        assert _amounts(member) == [Decimal("6666.66")] * 5 + [Decimal("6666.70")]
        assert member.schedule_total == Decimal("40000.00")
        assert [i.payment_month for i in member.installments] == [
            date(2024, m, 1) for m in range(1, 7)
        ]
        assert set(_statuses(member.installments)) == {InstallmentStatus.PENDING}

    def test_over_allocation_rejected(self, service, actor, project):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)

        with pytest.raises(PercentageExceededError) as exc_info:
            service.create_member(project.project_id, "Ben", Decimal("70"), actor=actor)

        assert exc_info.value.current_total == Decimal("40.00")
        assert exc_info.value.would_be_total == Decimal("110.00")
        summary = service.get_allocation_summary(project.project_id)
        assert summary.member_count == 1
        assert service.get_project_payment_status(project.project_id).total_count == 6

    def test_mark_paid_twice(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        installment = member.installments[0]

        assert service.mark_installment_paid(installment.installment_id, actor=actor) is True
        assert service.mark_installment_paid(installment.installment_id, actor=actor) is False

        schedule = service.get_member_schedule(member.member_id)
        assert schedule[0].status == InstallmentStatus.PAID
        assert schedule[0].paid_date == date(2024, 1, 15)
        assert schedule[0].paid_by_id == actor.actor_id

    def test_budget_change_regenerates_everything(self, service, actor, create_project):
        project = create_project(
            total_budget=Decimal("100000.00"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 6, 30),
        )
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        service.mark_installment_paid(member.installments[0].installment_id, actor=actor)

        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor, total_budget=Decimal("120000.00"),
        )

        assert result.changed is True
        (updated,) = result.members
        assert updated.calculated_amount == Decimal("48000.00")
        assert _amounts(updated) == [Decimal("8000.00")] * 6
        # Paid history is discarded under the default policy
        assert set(_statuses(updated.installments)) == {InstallmentStatus.PENDING}
        old_ids = {i.installment_id for i in member.installments}
        assert old_ids.isdisjoint(i.installment_id for i in updated.installments)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class TestCreateProject:

    def test_creates_open_project(self, service, actor, audit_recorder):
        project = service.create_project(
            "Bridge", Decimal("5000"), actor=actor,
            start_date=date(2024, 2, 1), end_date=date(2024, 4, 30),
        )

        assert project.status == ProjectStatus.OPEN
        assert project.total_budget == Decimal("5000.00")
        inserts = audit_recorder.of_kind(EntityKind.PROJECT, AuditAction.INSERT)
        assert len(inserts) == 1
        assert inserts[0].record_id == project.project_id
        assert inserts[0].actor_id == actor.actor_id

    def test_dates_optional(self, service, actor):
        project = service.create_project("Open-ended", Decimal("100"), actor=actor)
        assert project.start_date is None
        assert project.end_date is None

    def test_negative_budget(self, service, actor):
        with pytest.raises(InvalidBudgetError):
            service.create_project("Bad", Decimal("-1"), actor=actor)

    def test_end_before_start(self, service, actor):
        with pytest.raises(InvalidDateRangeError):
            service.create_project(
                "Bad", Decimal("100"), actor=actor,
                start_date=date(2024, 5, 1), end_date=date(2024, 4, 1),
            )


class TestUpdateProject:

    def test_noop_when_values_match(self, service, actor, project, audit_recorder):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        audit_recorder.clear()

        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor,
            total_budget=Decimal("10000.00"), start_date=project.start_date,
        )

        assert result.changed is False
        assert result.members == ()
        assert audit_recorder.records == []

    def test_unchanged_fields_keep_stored_values(self, service, actor, project):
        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor, end_date=date(2024, 3, 31),
        )

        assert result.project.total_budget == Decimal("10000.00")
        assert result.project.start_date == date(2024, 1, 15)
        assert result.project.end_date == date(2024, 3, 31)

    def test_unchanged_sentinel_repr(self):
        assert repr(UNCHANGED) == "UNCHANGED"

    def test_shorter_window_shrinks_schedule(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("30"), actor=actor)
        assert len(member.installments) == 6

        service.update_project_budget_or_dates(
            project.project_id, actor=actor, end_date=date(2024, 3, 1),
        )

        schedule = service.get_member_schedule(member.member_id)
        assert [i.monthly_amount for i in schedule] == [Decimal("1000.00")] * 3

    def test_clearing_a_date_removes_schedules(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("25"), actor=actor)

        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor, end_date=None,
        )

        (updated,) = result.members
        assert updated.calculated_amount == Decimal("2500.00")
        assert updated.installments == ()
        assert service.get_member_schedule(member.member_id) == ()
        assert service.get_allocation_summary(project.project_id).total_months is None

    def test_zero_budget_removes_schedules(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("25"), actor=actor)

        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor, total_budget=Decimal("0"),
        )

        assert result.members[0].calculated_amount == Decimal("0.00")
        assert service.get_member_schedule(member.member_id) == ()

    def test_restoring_dates_regenerates(self, service, actor, create_project):
        project = create_project(start_date=None, end_date=None)
        member = service.create_member(project.project_id, "Ana", Decimal("50"), actor=actor)
        assert member.installments == ()

        result = service.update_project_budget_or_dates(
            project.project_id, actor=actor,
            start_date=date(2024, 1, 1), end_date=date(2024, 2, 29),
        )

        assert _amounts(result.members[0]) == [Decimal("2500.00")] * 2

    def test_invalid_range_rolls_back(self, service, actor, project):
        with pytest.raises(InvalidDateRangeError):
            service.update_project_budget_or_dates(
                project.project_id, actor=actor, start_date=date(2024, 12, 1),
            )
        summary = service.get_allocation_summary(project.project_id)
        assert summary.start_date == date(2024, 1, 15)

    def test_audit_records(self, service, actor, project, audit_recorder):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        audit_recorder.clear()

        service.update_project_budget_or_dates(
            project.project_id, actor=actor, total_budget=Decimal("20000.00"),
        )

        (project_update,) = audit_recorder.of_kind(EntityKind.PROJECT, AuditAction.UPDATE)
        assert project_update.changed_fields == ("total_budget",)
        (member_update,) = audit_recorder.of_kind(EntityKind.MEMBER, AuditAction.UPDATE)
        assert member_update.after["calculated_amount"] == Decimal("8000.00")
        assert len(audit_recorder.of_kind(EntityKind.INSTALLMENT, AuditAction.DELETE)) == 6
        assert len(audit_recorder.of_kind(EntityKind.INSTALLMENT, AuditAction.INSERT)) == 6

    def test_unknown_project(self, service, actor):
        with pytest.raises(ProjectNotFoundError):
            service.update_project_budget_or_dates(
                uuid4(), actor=actor, total_budget=Decimal("1"),
            )


class TestDeleteProject:

    def test_cascades_with_audit(self, service, actor, project, audit_recorder):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        audit_recorder.clear()

        service.delete_project(project.project_id, actor=actor)

        with pytest.raises(ProjectNotFoundError):
            service.get_allocation_summary(project.project_id)
        with pytest.raises(MemberNotFoundError):
            service.get_member_schedule(member.member_id)
        assert len(audit_recorder.of_kind(EntityKind.INSTALLMENT, AuditAction.DELETE)) == 6
        assert len(audit_recorder.of_kind(EntityKind.MEMBER, AuditAction.DELETE)) == 1
        assert len(audit_recorder.of_kind(EntityKind.PROJECT, AuditAction.DELETE)) == 1

    def test_unknown_project(self, service, actor):
        with pytest.raises(ProjectNotFoundError):
            service.delete_project(uuid4(), actor=actor)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class TestCreateMember:

    def test_amount_and_schedule(self, service, actor, project):
        member = service.create_member(
            project.project_id, "Ana", Decimal("40"), actor=actor, role="Founder",
        )

        assert member.role == "Founder"
        assert member.percentage == Decimal("40.00")
        assert member.calculated_amount == Decimal("4000.00")
        assert _amounts(member) == [Decimal("666.66")] * 5 + [Decimal("666.70")]

    def test_audit_records(self, service, actor, project, audit_recorder):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)

        (insert,) = audit_recorder.of_kind(EntityKind.MEMBER, AuditAction.INSERT)
        assert insert.record_id == member.member_id
        assert insert.after["calculated_amount"] == Decimal("4000.00")
        assert len(audit_recorder.of_kind(EntityKind.INSTALLMENT, AuditAction.INSERT)) == 6

    def test_fills_to_exactly_one_hundred(self, service, actor, project):
        service.create_member(project.project_id, "Ana", Decimal("60"), actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("40"), actor=actor)

        summary = service.get_allocation_summary(project.project_id)
        assert summary.allocated_percentage == Decimal("100.00")
        assert summary.allocation_status == AllocationStatus.FULLY_ALLOCATED

    def test_duplicate_name(self, service, actor, project):
        service.create_member(project.project_id, "Ana", Decimal("10"), actor=actor)

        with pytest.raises(DuplicateMemberNameError):
            service.create_member(project.project_id, "Ana", Decimal("10"), actor=actor)

    def test_same_name_in_other_project(self, service, actor, create_project):
        first, second = create_project(), create_project()
        service.create_member(first.project_id, "Ana", Decimal("10"), actor=actor)
        service.create_member(second.project_id, "Ana", Decimal("10"), actor=actor)

    @pytest.mark.parametrize("percentage", ["0", "-10", "100.01"])
    def test_invalid_percentage(self, service, actor, project, percentage):
        with pytest.raises(InvalidPercentageError):
            service.create_member(project.project_id, "Ana", Decimal(percentage), actor=actor)

    def test_unknown_project(self, service, actor):
        with pytest.raises(ProjectNotFoundError):
            service.create_member(uuid4(), "Ana", Decimal("10"), actor=actor)

    def test_without_dates_has_no_schedule(self, service, actor, create_project):
        project = create_project(end_date=None)
        member = service.create_member(project.project_id, "Ana", Decimal("50"), actor=actor)

        assert member.calculated_amount == Decimal("5000.00")
        assert member.installments == ()


class TestUpdateMemberPercentage:

    def test_own_share_excluded_from_cap(self, service, actor, project):
        ana = service.create_member(project.project_id, "Ana", Decimal("50"), actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("50"), actor=actor)

        updated = service.update_member_percentage(ana.member_id, Decimal("50.00"), actor=actor)
        assert updated.percentage == Decimal("50.00")

        lowered = service.update_member_percentage(ana.member_id, Decimal("20"), actor=actor)
        assert lowered.calculated_amount == Decimal("2000.00")
        assert _amounts(lowered) == [Decimal("333.33")] * 5 + [Decimal("333.35")]

    def test_exceeding_cap(self, service, actor, project):
        ana = service.create_member(project.project_id, "Ana", Decimal("50"), actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("40"), actor=actor)

        with pytest.raises(PercentageExceededError):
            service.update_member_percentage(ana.member_id, Decimal("61"), actor=actor)

        schedule = service.get_member_schedule(ana.member_id)
        assert sum(i.monthly_amount for i in schedule) == Decimal("5000.00")

    def test_same_percentage_is_noop(self, service, actor, project, audit_recorder, captured_logs):
        ana = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        audit_recorder.clear()

        result = service.update_member_percentage(ana.member_id, Decimal("40"), actor=actor)

        assert result.installments == ana.installments
        assert audit_recorder.records == []
        assert any(r["message"] == "member_percentage_unchanged" for r in captured_logs())

    def test_unknown_member(self, service, actor):
        with pytest.raises(MemberNotFoundError):
            service.update_member_percentage(uuid4(), Decimal("10"), actor=actor)


class TestDeleteMember:

    def test_frees_percentage(self, service, actor, project, audit_recorder):
        ana = service.create_member(project.project_id, "Ana", Decimal("70"), actor=actor)
        audit_recorder.clear()

        service.delete_member(ana.member_id, actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("100"), actor=actor)

        removed = audit_recorder.of_kind(EntityKind.INSTALLMENT, AuditAction.DELETE)
        assert {r.record_id for r in removed} == {i.installment_id for i in ana.installments}
        assert len(audit_recorder.of_kind(EntityKind.MEMBER, AuditAction.DELETE)) == 1
        assert service.get_project_payment_status(project.project_id).total_count == 6

    def test_unknown_member(self, service, actor):
        with pytest.raises(MemberNotFoundError):
            service.delete_member(uuid4(), actor=actor)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class TestPayments:

    def test_mark_month_paid(self, service, actor, project):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("30"), actor=actor)

        assert service.mark_month_paid(project.project_id, 2, actor=actor) == 2
        assert service.mark_month_paid(project.project_id, 2, actor=actor) == 0
        assert service.mark_month_paid(project.project_id, 7, actor=actor) == 0

        status = service.get_project_payment_status(project.project_id)
        assert status.paid_count == 2

    def test_mark_month_paid_rejects_month_zero(self, service, actor, project):
        with pytest.raises(InvalidMonthNumberError):
            service.mark_month_paid(project.project_id, 0, actor=actor)

    def test_cancel(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        first, second = member.installments[:2]

        assert service.cancel_installment(first.installment_id, actor=actor) is True
        assert service.cancel_installment(first.installment_id, actor=actor) is False
        assert service.mark_installment_paid(first.installment_id, actor=actor) is False

        service.mark_installment_paid(second.installment_id, actor=actor)
        assert service.cancel_installment(second.installment_id, actor=actor) is False

        schedule = service.get_member_schedule(member.member_id)
        assert schedule[0].status == InstallmentStatus.CANCELLED
        assert schedule[1].status == InstallmentStatus.PAID

    def test_unknown_installment(self, service, actor):
        with pytest.raises(InstallmentNotFoundError):
            service.mark_installment_paid(uuid4(), actor=actor)
        with pytest.raises(InstallmentNotFoundError):
            service.cancel_installment(uuid4(), actor=actor)

    def test_payment_audit(self, service, actor, project, audit_recorder):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        audit_recorder.clear()

        service.mark_installment_paid(member.installments[0].installment_id, actor=actor)

        (update,) = audit_recorder.records
        assert update.action == AuditAction.UPDATE
        assert update.before["status"] == "PENDING"
        assert update.after["status"] == "PAID"
        assert set(update.changed_fields) == {"status", "paid_date"}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:

    def test_payment_status(self, service, actor, project):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        ben = service.create_member(project.project_id, "Ben", Decimal("30"), actor=actor)
        service.mark_month_paid(project.project_id, 1, actor=actor)
        service.cancel_installment(ben.installments[1].installment_id, actor=actor)

        status = service.get_project_payment_status(project.project_id)

        assert status.total_count == 12
        assert status.paid_count == 2
        assert status.pending_count == 9
        assert status.total_amount == Decimal("7000.00")
        assert status.paid_amount == Decimal("1166.66")
        assert status.pending_amount == Decimal("5333.34")
        assert status.completion_pct == Decimal("16.67")

    def test_payment_status_empty_project(self, service, project):
        status = service.get_project_payment_status(project.project_id)

        assert status.total_count == 0
        assert status.completion_pct == Decimal("0")

    def test_allocation_summary(self, service, actor, project):
        empty = service.get_allocation_summary(project.project_id)
        assert empty.allocation_status == AllocationStatus.NOT_ALLOCATED
        assert empty.remaining_percentage == Decimal("100.00")

        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        service.create_member(project.project_id, "Ben", Decimal("30"), actor=actor)
        summary = service.get_allocation_summary(project.project_id)

        assert summary.allocation_status == AllocationStatus.PARTIALLY_ALLOCATED
        assert summary.allocated_percentage == Decimal("70.00")
        assert summary.remaining_percentage == Decimal("30.00")
        assert summary.allocated_amount == Decimal("7000.00")
        assert summary.member_count == 2
        assert summary.total_months == 6

    def test_allocation_summary_uses_configured_cap(self, make_service, actor, project):
        capped = make_service(max_total_percentage=Decimal("80"))
        capped.create_member(project.project_id, "Ana", Decimal("50"), actor=actor)
        assert capped.get_allocation_summary(project.project_id).remaining_percentage == (
            Decimal("30.00")
        )

        capped.create_member(project.project_id, "Ben", Decimal("30"), actor=actor)
        summary = capped.get_allocation_summary(project.project_id)

        assert summary.allocation_status == AllocationStatus.FULLY_ALLOCATED
        assert summary.allocated_percentage == Decimal("80.00")
        assert summary.remaining_percentage == Decimal("0.00")

    def test_member_schedule_ordered(self, service, actor, project):
        member = service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)

        schedule = service.get_member_schedule(member.member_id)

        assert [i.month_number for i in schedule] == [1, 2, 3, 4, 5, 6]
        assert schedule == member.installments

    def test_unknown_ids(self, service):
        with pytest.raises(ProjectNotFoundError):
            service.get_project_payment_status(uuid4())
        with pytest.raises(MemberNotFoundError):
            service.get_member_schedule(uuid4())


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


class TestUnitOfWork:

    def test_failure_rolls_back_everything(
        self, service, actor, project, audit_recorder, monkeypatch,
    ):
        def boom(self, project, member, actor):
            raise RuntimeError("generator exploded")

        audit_recorder.clear()
        monkeypatch.setattr(RecalculationCoordinator, "allocate_member", boom)

        with pytest.raises(RuntimeError):
            service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)

        monkeypatch.undo()
        assert service.get_allocation_summary(project.project_id).member_count == 0
        assert audit_recorder.records == []

    def test_project_recalculation_is_atomic(
        self, service, actor, project, monkeypatch,
    ):
        service.create_member(project.project_id, "Ana", Decimal("40"), actor=actor)
        ben = service.create_member(project.project_id, "Ben", Decimal("30"), actor=actor)
        original = RecalculationCoordinator.allocate_member

        def fail_on_ben(self, project, member, actor):
            if member.name == "Ben":
                raise RuntimeError("second member failed")
            return original(self, project, member, actor)

        monkeypatch.setattr(RecalculationCoordinator, "allocate_member", fail_on_ben)
        with pytest.raises(RuntimeError):
            service.update_project_budget_or_dates(
                project.project_id, actor=actor, total_budget=Decimal("20000.00"),
            )
        monkeypatch.undo()

        summary = service.get_allocation_summary(project.project_id)
        assert summary.total_budget == Decimal("10000.00")
        assert summary.allocated_amount == Decimal("7000.00")
        assert sum(i.monthly_amount for i in service.get_member_schedule(ben.member_id)) == (
            Decimal("3000.00")
        )

    def test_audit_dispatched_after_commit(self, make_service, session, actor):
        seen = []

        class _Recorder:
            def record(self, event):
                seen.append(session.in_transaction())

        service = make_service(audit_recorder=_Recorder())
        service.create_project("Committed", Decimal("100"), actor=actor)

        assert seen == [False]

    def test_failing_recorder_does_not_fail_operation(
        self, make_service, actor, captured_logs,
    ):
        class _Broken:
            def record(self, event):
                raise ConnectionError("audit sink down")

        service = make_service(audit_recorder=_Broken())
        project = service.create_project("Survives", Decimal("100"), actor=actor)

        assert service.get_allocation_summary(project.project_id).name == "Survives"
        assert any(r["message"] == "audit_dispatch_failed" for r in captured_logs())

    def test_rollback_log_fields(self, service, actor, project, captured_logs):
        service.create_member(project.project_id, "Ana", Decimal("60"), actor=actor)
        with pytest.raises(PercentageExceededError):
            service.create_member(project.project_id, "Ben", Decimal("41"), actor=actor)

        (rollback,) = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rollback["operation"] == "create_member"
        assert rollback["error_code"] == "PERCENTAGE_EXCEEDED"
        assert rollback["actor_id"] == str(actor.actor_id)
        assert rollback["project_id"] == str(project.project_id)


# ---------------------------------------------------------------------------
# PRESERVE_PAID regeneration
# ---------------------------------------------------------------------------


class TestPreservePaid:

    def test_paid_installments_survive_budget_change(
        self, preserving_service, actor, project,
    ):
        member = preserving_service.create_member(
            project.project_id, "Ana", Decimal("60"), actor=actor,
        )
        preserving_service.mark_month_paid(project.project_id, 1, actor=actor)
        preserving_service.mark_month_paid(project.project_id, 2, actor=actor)

        preserving_service.update_project_budget_or_dates(
            project.project_id, actor=actor, total_budget=Decimal("12000.00"),
        )

        schedule = preserving_service.get_member_schedule(member.member_id)
        assert _statuses(schedule) == [InstallmentStatus.PAID] * 2 + [InstallmentStatus.PENDING] * 4
        assert [i.monthly_amount for i in schedule] == (
            [Decimal("1000.00")] * 2 + [Decimal("1300.00")] * 4
        )
        assert schedule[0].installment_id == member.installments[0].installment_id
        assert sum(i.monthly_amount for i in schedule) == Decimal("7200.00")

    def test_clearing_dates_with_paid_rows_conflicts(
        self, preserving_service, actor, project,
    ):
        member = preserving_service.create_member(
            project.project_id, "Ana", Decimal("60"), actor=actor,
        )
        preserving_service.mark_installment_paid(
            member.installments[0].installment_id, actor=actor,
        )

        with pytest.raises(PaidInstallmentConflictError):
            preserving_service.update_project_budget_or_dates(
                project.project_id, actor=actor, start_date=None,
            )

        assert len(preserving_service.get_member_schedule(member.member_id)) == 6

    def test_paid_more_than_new_allocation_conflicts(
        self, preserving_service, actor, project,
    ):
        member = preserving_service.create_member(
            project.project_id, "Ana", Decimal("60"), actor=actor,
        )
        for installment in member.installments[:3]:
            preserving_service.mark_installment_paid(installment.installment_id, actor=actor)

        with pytest.raises(PaidInstallmentConflictError):
            preserving_service.update_member_percentage(
                member.member_id, Decimal("20"), actor=actor,
            )

    def test_moving_start_after_payment_conflicts(
        self, preserving_service, actor, project,
    ):
        member = preserving_service.create_member(
            project.project_id, "Ana", Decimal("60"), actor=actor,
        )
        preserving_service.mark_month_paid(project.project_id, 1, actor=actor)

        with pytest.raises(PaidInstallmentConflictError):
            preserving_service.update_project_budget_or_dates(
                project.project_id, actor=actor,
                start_date=date(2024, 3, 1), end_date=date(2024, 8, 31),
            )

        schedule = preserving_service.get_member_schedule(member.member_id)
        assert schedule[0].payment_month == date(2024, 1, 1)
        assert schedule[0].status == InstallmentStatus.PAID
        assert [i.payment_month for i in schedule] == [
            date(2024, m, 1) for m in range(1, 7)
        ]

    def test_extending_end_keeps_consecutive_months(
        self, preserving_service, actor, project,
    ):
        member = preserving_service.create_member(
            project.project_id, "Ana", Decimal("60"), actor=actor,
        )
        preserving_service.mark_month_paid(project.project_id, 1, actor=actor)

        preserving_service.update_project_budget_or_dates(
            project.project_id, actor=actor, end_date=date(2024, 8, 31),
        )

        schedule = preserving_service.get_member_schedule(member.member_id)
        assert [i.payment_month for i in schedule] == [
            date(2024, m, 1) for m in range(1, 9)
        ]
        assert schedule[0].status == InstallmentStatus.PAID
        assert schedule[-1].monthly_amount == Decimal("714.32")
        assert sum(i.monthly_amount for i in schedule) == Decimal("6000.00")
