"""
College Catalog Schemas

Request and response bodies for the college and department endpoints.
Contacts are nested on the wire (``dean``, ``chair``, ...) and flat in the
database.
"""

from pydantic import EmailStr, Field, field_validator

from appointments.modules.applications.schemas import CamelModel

from .models import College, Department


class _CatalogIn(CamelModel):
    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class CollegeIn(_CatalogIn):
    """Body for creating or replacing a college."""

    name: str = Field(..., min_length=1, max_length=200)
    has_departments: bool
    dean_name: str = Field(..., min_length=1, max_length=200)
    dean_email: EmailStr
    dean_title: str | None = Field("Dean", max_length=100)
    senior_associate_dean_name: str | None = Field(None, max_length=200)
    senior_associate_dean_email: EmailStr | None = None

    @field_validator("dean_title", mode="after")
    @classmethod
    def default_title(cls, value: str | None) -> str:
        return value or "Dean"


class DepartmentIn(_CatalogIn):
    """Body for creating or replacing a department."""

    name: str = Field(..., min_length=1, max_length=200)
    chair_name: str = Field(..., min_length=1, max_length=200)
    chair_email: EmailStr
    chair_title: str | None = Field("Department Chair", max_length=100)
    division_chair_name: str | None = Field(None, max_length=200)
    division_chair_email: EmailStr | None = None

    @field_validator("chair_title", mode="after")
    @classmethod
    def default_title(cls, value: str | None) -> str:
        return value or "Department Chair"


class ContactOut(CamelModel):
    name: str
    email: str
    title: str | None = None


class DepartmentOut(CamelModel):
    id: str
    name: str
    chair: ContactOut
    division_chair: ContactOut | None = None

    @classmethod
    def from_model(cls, department: Department) -> "DepartmentOut":
        division_chair = None
        if department.division_chair_name:
            division_chair = ContactOut(
                name=department.division_chair_name,
                email=department.division_chair_email or "",
            )
        return cls(
            id=department.id,
            name=department.name,
            chair=ContactOut(
                name=department.chair_name,
                email=department.chair_email,
                title=department.chair_title,
            ),
            division_chair=division_chair,
        )


class CollegeOut(CamelModel):
    id: str
    name: str
    has_departments: bool
    dean: ContactOut
    senior_associate_dean: ContactOut | None = None
    departments: list[DepartmentOut] | None = None

    @classmethod
    def from_model(cls, college: College, with_departments: bool = True) -> "CollegeOut":
        senior_associate_dean = None
        if college.senior_associate_dean_name:
            senior_associate_dean = ContactOut(
                name=college.senior_associate_dean_name,
                email=college.senior_associate_dean_email or "",
            )
        departments = None
        if with_departments and college.has_departments:
            departments = [DepartmentOut.from_model(d) for d in college.departments]
        return cls(
            id=college.id,
            name=college.name,
            has_departments=college.has_departments,
            dean=ContactOut(
                name=college.dean_name,
                email=college.dean_email,
                title=college.dean_title,
            ),
            senior_associate_dean=senior_associate_dean,
            departments=departments,
        )


class CollegeResponse(CamelModel):
    data: CollegeOut
    message: str | None = None


class CollegeListResponse(CamelModel):
    data: list[CollegeOut]
    message: str


class DepartmentResponse(CamelModel):
    data: DepartmentOut
    message: str | None = None


class DepartmentListResponse(CamelModel):
    data: list[DepartmentOut]
    message: str


class DeletedOut(CamelModel):
    deleted: bool = True


class DeleteResponse(CamelModel):
    data: DeletedOut = Field(default_factory=DeletedOut)
    message: str
