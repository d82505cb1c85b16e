"""
Pipeline Repositories

Database access layer for the signal pipeline. Repositories execute SQL only;
stages and services own commit/rollback.
"""

from .pipeline_job_repository import PipelineJobRepository
from .linkedin_profile_repository import LinkedInProfileRepository
from .post_repository import PostRepository
from .message_repository import MessageRepository
from .catalog_repository import CatalogRepository
from .post_vector_repository import PostVectorRepository

__all__ = [
    "PipelineJobRepository",
    "LinkedInProfileRepository",
    "PostRepository",
    "MessageRepository",
    "CatalogRepository",
    "PostVectorRepository",
]
