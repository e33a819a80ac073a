"""
Unit tests for applications helper functions.
"""

import re
from datetime import UTC, datetime

import pytest

from appointments.modules.applications.helpers import (
    DecisionAction,
    apply_decision,
    build_approval_chain,
    generate_application_id,
    has_signed_before,
    institution_for_email,
    role_label,
    status_for_position,
)
from appointments.modules.applications.models import (
    ApplicationStatus,
    ApproverRole,
    Institution,
)


class TestGenerateApplicationId:
    def test_format(self):
        application_id = generate_application_id(datetime(2026, 3, 1, tzinfo=UTC))

        assert re.fullmatch(r"APP-2026-[0-9A-F]{8}", application_id)

    def test_unique(self):
        assert len({generate_application_id() for _ in range(50)}) == 50


class TestInstitutionForEmail:
    def test_vumc(self):
        assert institution_for_email("someone@VUMC.org") == Institution.VUMC

    def test_vanderbilt(self):
        assert institution_for_email("someone@vanderbilt.edu") == Institution.VANDERBILT


class TestBuildApprovalChain:
    """Tests for build_approval_chain."""

    def test_canonical_order_regardless_of_input_order(self):
        chain = build_approval_chain(
            {
                ApproverRole.DEAN: ("Dr. Dean", "dean@vanderbilt.edu"),
                ApproverRole.DEPARTMENT_CHAIR: ("Dr. Chair", "Chair@Vanderbilt.edu"),
            }
        )

        assert [entry["role"] for entry in chain] == ["department_chair", "dean"]
        assert chain[0]["email"] == "chair@vanderbilt.edu"

    def test_skips_incomplete_roles(self):
        chain = build_approval_chain(
            {
                ApproverRole.DEPARTMENT_CHAIR: ("", ""),
                ApproverRole.DIVISION_CHAIR: ("Dr. Division", "  "),
                ApproverRole.SENIOR_ASSOCIATE_DEAN: ("Dr. Associate", "sad@vanderbilt.edu"),
            }
        )

        assert chain == [
            {
                "role": "senior_associate_dean",
                "name": "Dr. Associate",
                "email": "sad@vanderbilt.edu",
            }
        ]

    def test_empty(self):
        assert build_approval_chain({}) == []


class TestStatusForPosition:
    CHAIN = [
        {"role": "department_chair", "name": "A", "email": "a@vanderbilt.edu"},
        {"role": "division_chair", "name": "B", "email": "b@vanderbilt.edu"},
        {"role": "dean", "name": "C", "email": "c@vanderbilt.edu"},
    ]

    @pytest.mark.parametrize(
        "position,expected",
        [
            (0, ApplicationStatus.SUBMITTED),
            (1, ApplicationStatus.PENDING_DIVISION_CHAIR),
            (2, ApplicationStatus.PENDING_DEAN),
            (3, ApplicationStatus.APPROVED),
        ],
    )
    def test_status(self, position, expected):
        assert status_for_position(self.CHAIN, position) == expected

    def test_has_signed_before_ignores_case(self):
        assert has_signed_before(self.CHAIN, " A@Vanderbilt.edu ", 1) is True
        assert has_signed_before(self.CHAIN, "b@vanderbilt.edu", 1) is False
        assert has_signed_before(self.CHAIN, "nobody@vanderbilt.edu", 3) is False

    def test_has_signed_before_checks_every_role_held(self):
        chain = [*self.CHAIN, {"role": "dean", "name": "A", "email": "a@vanderbilt.edu"}]

        assert has_signed_before(chain, "a@vanderbilt.edu", 3) is True
        assert has_signed_before(chain, "c@vanderbilt.edu", 2) is False


class TestApplyDecision:
    """Tests for apply_decision."""

    def test_approve_advances_and_records_history(self, two_step_application):
        now = datetime(2026, 1, 6, tzinfo=UTC)

        new_status = apply_decision(
            two_step_application, DecisionAction.APPROVE, "Dr. Chair", "ok", now
        )

        assert new_status == ApplicationStatus.PENDING_DEAN
        assert two_step_application.chain_position == 1
        assert two_step_application.updated_at == now
        entry = two_step_application.status_history[-1]
        assert entry.sequence == 1
        assert entry.status == new_status
        assert entry.approver_role == ApproverRole.DEPARTMENT_CHAIR
        assert entry.notes == "ok"

    def test_deny_keeps_position(self, two_step_application):
        new_status = apply_decision(two_step_application, DecisionAction.DENY, "Dr. Chair", None)

        assert new_status == ApplicationStatus.DENIED
        assert two_step_application.chain_position == 0
        assert two_step_application.current_approver is None

    def test_no_pending_approver_raises(self, two_step_application):
        two_step_application.status = ApplicationStatus.APPROVED

        with pytest.raises(ValueError):
            apply_decision(two_step_application, DecisionAction.APPROVE, "x", None)

    def test_role_label(self):
        assert role_label("senior_associate_dean") == "Senior Associate Dean"
