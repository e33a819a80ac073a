"""
College Catalog Models

Colleges and their departments, with the default dean and chair contacts
the submission form offers as approvers.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointments.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class College(Base):
    """
    A college or school within the university.

    Colleges without departments (``has_departments`` False) report
    straight to the dean; their department list is always empty.
    """

    __tablename__ = "colleges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    has_departments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Dean
    dean_name: Mapped[str] = mapped_column(String(200), nullable=False)
    dean_email: Mapped[str] = mapped_column(String(255), nullable=False)
    dean_title: Mapped[str] = mapped_column(String(100), nullable=False, default="Dean")

    # Senior associate dean (optional)
    senior_associate_dean_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    senior_associate_dean_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    departments: Mapped[list["Department"]] = relationship(
        "Department",
        back_populates="college",
        cascade="all, delete-orphan",
        order_by="Department.name",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<College(id={self.id}, name={self.name})>"


class Department(Base):
    """A department inside a college, with its chair contacts."""

    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    college_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("colleges.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Department chair
    chair_name: Mapped[str] = mapped_column(String(200), nullable=False)
    chair_email: Mapped[str] = mapped_column(String(255), nullable=False)
    chair_title: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Department Chair"
    )

    # Division chair (optional)
    division_chair_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    division_chair_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    college: Mapped["College"] = relationship("College", back_populates="departments")

    __table_args__ = (Index("ix_departments_college_id", "college_id"),)

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name}, college_id={self.college_id})>"
