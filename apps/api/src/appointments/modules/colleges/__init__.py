"""
Colleges module - College and department catalog.

Supplies the submission form with colleges, their departments and the
default dean and chair contacts, and anchors the faculty member's college
on submitted applications.
"""

from .models import College, Department
from .repository import CollegeRepository, DepartmentRepository
from .router import router

__all__ = ["College", "Department", "CollegeRepository", "DepartmentRepository", "router"]
