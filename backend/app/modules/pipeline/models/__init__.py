"""
Pipeline Models

Exports all ORM models for the signal pipeline module.
"""

from .pipeline_job import PipelineJob
from .linkedin_profile import LinkedInProfile
from .post import Post
from .generated_message import GeneratedMessage
from .catalog import Industry, Signal, User, PipelineConfig
from .post_vector import PostVector

__all__ = [
    "PipelineJob",
    "LinkedInProfile",
    "Post",
    "GeneratedMessage",
    "Industry",
    "Signal",
    "User",
    "PipelineConfig",
    "PostVector",
]
