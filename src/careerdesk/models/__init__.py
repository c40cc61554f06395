"""Data models for CareerDesk."""

from careerdesk.models.entities import (
    Advertisement,
    Company,
    FormSubmission,
    Job,
    JobApplication,
    Resource,
    SavedJob,
    SavedJobListing,
    Testimonial,
    User,
)
from careerdesk.models.filters import (
    AdvertisementFilters,
    JobFilters,
    JobPage,
    JobSort,
    ResourceFilters,
    TestimonialFilters,
)

__all__ = [
    "Advertisement",
    "AdvertisementFilters",
    "Company",
    "FormSubmission",
    "Job",
    "JobApplication",
    "JobFilters",
    "JobPage",
    "JobSort",
    "Resource",
    "ResourceFilters",
    "SavedJob",
    "SavedJobListing",
    "Testimonial",
    "TestimonialFilters",
    "User",
]
