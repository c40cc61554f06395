"""Read models for the documents of each collection.

The store itself is schema-less and callers own the shape of what they store,
so field values are not coerced or rejected here: a listing must load whatever
the files hold. The models name the well-known fields, apply read defaults and
keep unknown fields (``extra="allow"``).
"""

import re
from typing import Any

from beartype import beartype
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


@beartype
def slugify(title: str) -> str:
    """Derive a URL slug from a title.

    Examples:
        >>> slugify("Working in Canada: A Guide!")
        'working-in-canada-a-guide'
    """
    return _SLUG_SEPARATORS.sub("-", title.lower()).strip("-")


class Document(BaseModel):
    """Fields every stored document carries."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: Any = Field(description="Unique id within the collection")
    created_at: Any = Field(default=None, description="Creation time")
    updated_at: Any = Field(default=None, description="Last update time")


class User(Document):
    """A site or back-office user."""

    username: Any = None
    email: Any = None
    first_name: Any = None
    last_name: Any = None
    role: Any = Field(default="user", description="Either 'user' or 'admin'")


class Company(Document):
    """An employer that jobs are posted for."""

    name: Any = None
    description: Any = None
    website: Any = None
    logo_url: Any = None
    industry: Any = None
    country: Any = None


class Job(Document):
    """A job posting, with its company attached on read."""

    title: Any = None
    description: Any = None
    location: Any = None
    country: Any = None
    industry: Any = None
    category: Any = None
    experience_level: Any = Field(
        default=None,
        validation_alias=AliasChoices("experienceLevel", "experience_level"),
    )
    remote_type: Any = Field(
        default=None,
        validation_alias=AliasChoices("remoteType", "remote_type"),
    )
    visa_support: Any = Field(
        default=None,
        validation_alias=AliasChoices("visaSupport", "visa_support"),
    )
    salary_min: Any = None
    salary_max: Any = None
    status: Any = "published"
    featured: Any = False
    posted_at: Any = None
    company_id: Any = Field(
        default=None,
        validation_alias=AliasChoices("companyId", "company_id"),
    )
    # Left to right: a resolved company becomes a Company, anything else the
    # caller stored under "company" is kept as is
    company: Company | Any = Field(
        default=None,
        union_mode="left_to_right",
        description="Resolved from company_id, None if missing",
    )


class SavedJobListing(Job):
    """A job as listed in a user's saved jobs."""

    saved_at: Any = None


class JobApplication(Document):
    """A candidate's application to a job."""

    job_id: Any = None
    user_id: Any = None
    status: Any = "pending"
    notes: Any = None
    applied_at: Any = None
    job: Job | Any = Field(default=None, union_mode="left_to_right")
    user: User | Any = Field(default=None, union_mode="left_to_right")


class Testimonial(Document):
    """Client feedback shown on the public site."""

    __test__ = False  # Not a pytest test class

    name: Any = None
    content: Any = None
    rating: Any = None
    service_type: Any = None
    is_visible: Any = True
    is_verified: Any = False


class FormSubmission(Document):
    """A lead captured by one of the public forms."""

    form_type: Any = None
    name: Any = None
    email: Any = None
    phone: Any = None
    message: Any = None
    status: Any = "pending"
    notes: Any = None
    submitted_at: Any = None


class Resource(Document):
    """A guide or article in the resource library."""

    title: Any = None
    slug: Any = None
    type: Any = None
    category: Any = None
    country: Any = None
    content: Any = None
    is_published: Any = True
    is_featured: Any = False
    published_at: Any = None


class Advertisement(Document):
    """A banner shown in one of the page positions."""

    title: Any = None
    image_url: Any = None
    link_url: Any = None
    position: Any = None
    is_active: Any = True
    priority: Any = 0
    click_count: Any = 0
    impression_count: Any = 0
    # Not parsed: malformed dates must still load
    start_date: Any = Field(
        default=None, validation_alias=AliasChoices("start_date", "startDate")
    )
    end_date: Any = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )


class SavedJob(Document):
    """A (user, job) bookmark."""

    user_id: str
    job_id: str
    saved_at: str | None = None
