"""boto3-backed control plane client for CloudFormation."""

import logging
from typing import Optional

from botocore.exceptions import ClientError

from clients.base import ChangeSetSummary, StackEvent

logger = logging.getLogger(__name__)


def _event_message(event: dict) -> str:
    """Format a raw stack event as a single line."""
    parts = [
        event.get('ResourceType', ''),
        event.get('LogicalResourceId', ''),
        event.get('ResourceStatus', ''),
    ]
    if reason := event.get('ResourceStatusReason'):
        parts.append(reason)
    return ' - '.join(p for p in parts if p)


class CloudFormationClient:
    """Thin adapter over a boto3 CloudFormation client.

    Errors from boto3 propagate unchanged; the orchestrators wrap them with
    the operation name.
    """

    def __init__(self, client):
        self._client = client

    def create_change_set(self, stack_name: str, change_set_name: str,
                          template_body: Optional[str] = None,
                          template_url: Optional[str] = None,
                          capabilities: Optional[list[str]] = None) -> None:
        params: dict = {
            'StackName': stack_name,
            'ChangeSetName': change_set_name,
        }
        if template_url:
            params['TemplateURL'] = template_url
        else:
            params['TemplateBody'] = template_body
        if capabilities:
            params['Capabilities'] = list(capabilities)
        logger.debug(f"Calling [CreateChangeSet] for {stack_name}/{change_set_name} "
                     f"(capabilities={capabilities or []})")
        self._client.create_change_set(**params)

    def describe_change_set(self, stack_name: str, change_set_name: str) -> dict:
        resp = self._client.describe_change_set(
            StackName=stack_name, ChangeSetName=change_set_name)
        resp.pop('ResponseMetadata', None)
        return resp

    def list_change_sets(self, stack_name: str) -> list[ChangeSetSummary]:
        resp = self._client.list_change_sets(StackName=stack_name)
        return [
            ChangeSetSummary(
                name=s['ChangeSetName'],
                creation_time=s.get('CreationTime'),
                execution_status=s.get('ExecutionStatus', ''),
                status=s.get('Status', ''),
            )
            for s in resp.get('Summaries', [])
        ]

    def execute_change_set(self, stack_name: str, change_set_name: str) -> None:
        self._client.execute_change_set(
            StackName=stack_name, ChangeSetName=change_set_name)

    def delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        self._client.delete_change_set(
            StackName=stack_name, ChangeSetName=change_set_name)

    def delete_stack(self, stack_name: str) -> None:
        self._client.delete_stack(StackName=stack_name)

    def wait_until_stack_update_complete(self, stack_name: str) -> None:
        logger.debug(f"Calling [WaitUntilStackUpdateComplete] for {stack_name}")
        self._client.get_waiter('stack_update_complete').wait(StackName=stack_name)

    def wait_until_stack_delete_complete(self, stack_name: str) -> None:
        logger.debug(f"Calling [WaitUntilStackDeleteComplete] for {stack_name}")
        self._client.get_waiter('stack_delete_complete').wait(StackName=stack_name)

    def fetch_recent_stack_events(self, stack_name: str) -> list[StackEvent]:
        resp = self._client.describe_stack_events(StackName=stack_name)
        events = [
            StackEvent(
                event_id=e['EventId'],
                timestamp=e.get('Timestamp'),
                message=_event_message(e),
            )
            for e in resp.get('StackEvents', [])
        ]
        # API returns newest first
        events.reverse()
        return events

    def stack_exists(self, stack_name: str) -> bool:
        try:
            self._client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if 'does not exist' in e.response.get('Error', {}).get('Message', ''):
                return False
            raise
        return True
