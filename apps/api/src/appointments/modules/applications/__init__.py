"""
Secondary Appointment Applications Module

Handles the faculty secondary appointment workflow:
1. Submission with CV upload and an approval chain taken from the form
2. Sequential approver sign-off (department chair, division chair,
   senior associate dean, dean), any of whom may deny
3. Append-only status history and applicant status page
4. Background reminders for stalled approvals

API Endpoints:
- POST /applications - Submit new application
- GET /applications - List applications
- GET /applications/search - Search applications
- GET /applications/my-applications - Applicant dashboard
- POST /applications/validate-token - Check a signature link
- GET /applications/{id} - Application detail
- GET /applications/{id}/status - Applicant status page
- GET /applications/{id}/cv - CV download
- POST /applications/{id}/approve - Approve or deny
- GET /metrics - Aggregate workflow metrics

Background Jobs (via APScheduler):
- send_approver_reminders: hourly, reminds approvers of stalled applications
- cleanup_expired_tokens: hourly, deletes expired approval tokens
"""

from .jobs import register_application_jobs
from .metrics_router import router as metrics_router
from .router import router

__all__ = ["router", "metrics_router", "register_application_jobs"]
