"""
Unit tests for the applications background jobs.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from appointments.core.email import NotificationDeliveryError
from appointments.modules.applications import jobs, notifications, repository
from appointments.modules.applications.models import ApplicationStatus

JOBS = "appointments.modules.applications.jobs"


@pytest.fixture
def session_maker(mock_db):
    maker = MagicMock()
    maker.return_value.__aenter__.return_value = mock_db
    maker.return_value.__aexit__.return_value = False
    with patch(f"{JOBS}.async_session_maker", maker):
        yield maker


@pytest.fixture
def stalled_application(application_factory):
    application = application_factory(submitted_at=datetime.now(UTC) - timedelta(days=10))
    return application


class TestSendApproverReminders:
    @pytest.mark.asyncio
    async def test_reminds_current_approver(self, session_maker, stalled_application):
        with (
            patch.object(
                repository,
                "get_stalled_applications",
                AsyncMock(return_value=[stalled_application]),
            ),
            patch.object(repository, "get_by_id", AsyncMock(return_value=stalled_application)),
            patch.object(repository, "mark_reminder_sent", AsyncMock()) as mark,
            patch(f"{JOBS}.issue_approval_token", AsyncMock(return_value="fresh-token")),
            patch.object(notifications, "notify_reminder", AsyncMock()) as remind,
        ):
            summary = await jobs.send_approver_reminders()

        assert summary["processed"] == 1
        assert summary["sent"] == 1
        assert summary["errors"] == 0
        approver = remind.call_args.args[1]
        assert approver["email"] == "chair@vanderbilt.edu"
        assert remind.call_args.args[2] == "fresh-token"
        assert remind.call_args.kwargs["days_pending"] >= 9
        mark.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_marks_reminder_even_when_email_fails(self, session_maker, stalled_application):
        with (
            patch.object(
                repository,
                "get_stalled_applications",
                AsyncMock(return_value=[stalled_application]),
            ),
            patch.object(repository, "get_by_id", AsyncMock(return_value=stalled_application)),
            patch.object(repository, "mark_reminder_sent", AsyncMock()) as mark,
            patch(f"{JOBS}.issue_approval_token", AsyncMock(return_value="fresh-token")),
            patch.object(
                notifications,
                "notify_reminder",
                AsyncMock(
                    side_effect=NotificationDeliveryError(
                        "chair@vanderbilt.edu", "Reminder", 3, None
                    )
                ),
            ),
        ):
            summary = await jobs.send_approver_reminders()

        assert summary["sent"] == 0
        assert summary["results"][0]["status"] == "marked_sent_email_failed"
        mark.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_application_decided_since_query(
        self, session_maker, stalled_application
    ):
        stalled_application.status = ApplicationStatus.APPROVED

        with (
            patch.object(
                repository,
                "get_stalled_applications",
                AsyncMock(return_value=[stalled_application]),
            ),
            patch.object(repository, "get_by_id", AsyncMock(return_value=stalled_application)),
            patch.object(repository, "mark_reminder_sent", AsyncMock()) as mark,
            patch.object(notifications, "notify_reminder", AsyncMock()) as remind,
        ):
            summary = await jobs.send_approver_reminders()

        assert summary["results"][0]["status"] == "skipped"
        remind.assert_not_called()
        mark.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_job(
        self, session_maker, application_factory
    ):
        first = application_factory(application_id="APP-2026-00000001")
        second = application_factory(application_id="APP-2026-00000002")

        with (
            patch.object(
                repository, "get_stalled_applications", AsyncMock(return_value=[first, second])
            ),
            patch.object(
                repository, "get_by_id", AsyncMock(side_effect=[RuntimeError("db"), second])
            ),
            patch.object(repository, "mark_reminder_sent", AsyncMock()),
            patch(f"{JOBS}.issue_approval_token", AsyncMock(return_value="fresh-token")),
            patch.object(notifications, "notify_reminder", AsyncMock()),
        ):
            summary = await jobs.send_approver_reminders()

        assert summary["processed"] == 2
        assert summary["errors"] == 1
        assert summary["sent"] == 1


@pytest.mark.asyncio
async def test_cleanup_expired_tokens(session_maker):
    with patch.object(repository, "delete_expired_tokens", AsyncMock(return_value=3)):
        result = await jobs.cleanup_expired_tokens()

    assert result == {"job": jobs.JOB_ID_CLEANUP_TOKENS, "deleted": 3}


def test_register_application_jobs():
    with patch(f"{JOBS}.register_job") as register:
        jobs.register_application_jobs()

    registered = [c.kwargs["job_id"] for c in register.call_args_list]
    assert registered == [jobs.JOB_ID_SEND_REMINDERS, jobs.JOB_ID_CLEANUP_TOKENS]
