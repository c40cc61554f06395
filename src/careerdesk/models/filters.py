"""Query filters and paged results for adapter listings."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from careerdesk.models.entities import Job


class JobSort(str, Enum):
    """Ordering for job listings."""

    DATE = "date"
    SALARY = "salary"


class JobFilters(BaseModel):
    """Filters for job listings. Unset fields do not filter."""

    model_config = ConfigDict(frozen=True)

    search: str | None = Field(
        default=None, description="Case-insensitive text in title/description/location"
    )
    country: str | None = None
    industry: str | None = None
    category: str | None = None
    experience_level: str | None = None
    remote_type: str | None = None
    visa_support: bool | None = None
    sort: JobSort | None = Field(default=None, description="Insertion order if unset")
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class JobPage(BaseModel):
    """One page of jobs plus the filtered count before paging."""

    model_config = ConfigDict(frozen=True)

    jobs: list[Job] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)


class TestimonialFilters(BaseModel):
    """Filters for testimonial listings."""

    __test__ = False  # Not a pytest test class

    model_config = ConfigDict(frozen=True)

    service_type: str | None = None
    is_visible: bool | None = Field(default=None, description="Visible only if unset")
    limit: int | None = Field(default=None, ge=0)


class ResourceFilters(BaseModel):
    """Filters for resource listings."""

    model_config = ConfigDict(frozen=True)

    type: str | None = None
    category: str | None = None
    country: str | None = None
    is_published: bool | None = Field(
        default=None, description="Published only if unset"
    )
    limit: int | None = Field(default=None, ge=0)


class AdvertisementFilters(BaseModel):
    """Filters for advertisement listings."""

    model_config = ConfigDict(frozen=True)

    position: str | None = None
    is_active: bool | None = Field(
        default=None, description="True also applies the start/end date window"
    )
    limit: int | None = Field(default=None, ge=0)
