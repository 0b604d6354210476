"""Client interfaces consumed by the orchestrators.

The orchestrators never talk to boto3 directly. They call through these
narrow protocols so tests can substitute recording fakes and so retry or
credential policy stays in the adapter layer.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

CAPABILITY_IAM = 'CAPABILITY_IAM'
CAPABILITY_NAMED_IAM = 'CAPABILITY_NAMED_IAM'


@dataclass
class StackEvent:
    """One entry from a stack's event log."""
    event_id: str
    timestamp: Optional[datetime]
    message: str


@dataclass
class ChangeSetSummary:
    """Listing entry for a change-set.

    Attributes:
        name: Change-set name
        creation_time: When the change-set was created
        execution_status: e.g. AVAILABLE, EXECUTE_COMPLETE, UNAVAILABLE
        status: e.g. CREATE_COMPLETE, FAILED
    """
    name: str
    creation_time: Optional[datetime]
    execution_status: str = ''
    status: str = ''


@runtime_checkable
class ControlPlaneClient(Protocol):
    """Stack and change-set operations against the control plane."""

    def create_change_set(self, stack_name: str, change_set_name: str,
                          template_body: Optional[str] = None,
                          template_url: Optional[str] = None,
                          capabilities: Optional[list[str]] = None) -> None:
        ...

    def describe_change_set(self, stack_name: str, change_set_name: str) -> dict:
        ...

    def list_change_sets(self, stack_name: str) -> list[ChangeSetSummary]:
        ...

    def execute_change_set(self, stack_name: str, change_set_name: str) -> None:
        ...

    def delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        ...

    def delete_stack(self, stack_name: str) -> None:
        ...

    def wait_until_stack_update_complete(self, stack_name: str) -> None:
        ...

    def wait_until_stack_delete_complete(self, stack_name: str) -> None:
        ...

    def fetch_recent_stack_events(self, stack_name: str) -> list[StackEvent]:
        """Return recent events, oldest first."""
        ...

    def stack_exists(self, stack_name: str) -> bool:
        ...


@runtime_checkable
class ObjectStoreClient(Protocol):
    """Bucket operations used for template uploads."""

    def bucket_exists(self, name: str) -> bool:
        ...

    def create_bucket(self, name: str) -> None:
        ...

    def put_object(self, bucket: str, key: str, body: str) -> str:
        """Upload body and return its URL."""
        ...
