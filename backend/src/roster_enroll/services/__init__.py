"""Business logic services."""

from roster_enroll.services.directory_client import (
    DirectoryClient,
    RepositoryDirectory,
    get_account_directory,
)
from roster_enroll.services.enrollment_service import EnrollmentService, EnrollmentSession
from roster_enroll.services.identity_resolver import IdentityResolver
from roster_enroll.services.jersey_registry import JerseyRegistry, build_jersey_set, is_taken
from roster_enroll.services.linking_orchestrator import LinkingOrchestrator, LinkReport

__all__ = [
    "DirectoryClient",
    "RepositoryDirectory",
    "get_account_directory",
    "EnrollmentService",
    "EnrollmentSession",
    "IdentityResolver",
    "JerseyRegistry",
    "build_jersey_set",
    "is_taken",
    "LinkingOrchestrator",
    "LinkReport",
]
