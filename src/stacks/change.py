"""Change-set management.

Each request kind is a short sequence of control plane calls. 'create'
polls the change-set until it settles; 'execute' streams stack events in
the background while waiting for the update to finish.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from clients.base import (
    CAPABILITY_IAM,
    CAPABILITY_NAMED_IAM,
    ControlPlaneClient,
    ObjectStoreClient,
)
from common import (
    ChangeSetFailedError,
    OperationResult,
    StackError,
    UnknownStatusError,
    remote_call,
    run_operation,
)
from stacks.stack import Stack
from stacks.tail import EventTailer, TailSession

logger = logging.getLogger(__name__)

IAM_MARKER = 'AWS::IAM'

# Change-set statuses seen while creation is still in flight
PENDING_STATUSES = ('CREATE_PENDING', 'CREATE_IN_PROGRESS')
CREATE_COMPLETE = 'CREATE_COMPLETE'
FAILED = 'FAILED'

RFC850_FORMAT = '%A, %d-%b-%y %H:%M:%S %Z'


def required_capabilities(template: str) -> list[str]:
    """Capabilities to acknowledge for a template.

    Any occurrence of the IAM type prefix triggers both flags, including
    occurrences in descriptions or unrelated names.
    """
    if IAM_MARKER in template:
        return [CAPABILITY_IAM, CAPABILITY_NAMED_IAM]
    return []


def template_key(stack_name: str, now: datetime) -> str:
    """Object key for an uploaded template, e.g. 'web_2024-3-7_1405.template'."""
    stamp = f"{now.year}-{now.month}-{now.day}_{now.hour}{now.minute}"
    return f"{stack_name}_{stamp}.template"


class ChangeSetOrchestrator:
    """Drives create/execute/list/rm/desc for change-sets.

    Attributes:
        cfn: Control plane client
        s3: Object store client, required only for stacks with a bucket
        poll_interval: Seconds between describe calls while creating
        tail_interval: Seconds between event fetches while executing
    """

    def __init__(self, cfn: ControlPlaneClient,
                 s3: Optional[ObjectStoreClient] = None,
                 poll_interval: float = 1.0,
                 tail_interval: float = 1.0,
                 log: Optional[logging.Logger] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.cfn = cfn
        self.s3 = s3
        self.poll_interval = poll_interval
        self.tail_interval = tail_interval
        self.log = log or logger
        self._clock = clock

    def run(self, request: str, stack: Stack,
            change_set_name: Optional[str] = None) -> OperationResult:
        """Dispatch a change-set request by kind.

        Args:
            request: One of create, execute, list, rm/delete, desc/describe
            stack: Target stack
            change_set_name: Change-set name (unused for list)
        """
        if request == 'list':
            return self.list(stack)

        handlers = {
            'create': self.create,
            'execute': self.execute,
            'rm': self.delete,
            'delete': self.delete,
            'desc': self.describe,
            'describe': self.describe,
        }
        handler = handlers.get(request)
        if handler is None:
            error = StackError(f"Unknown change-set request: {request}")
            return OperationResult(success=False, message=str(error), error=error)
        if not change_set_name:
            error = StackError(f"Change-set name required for '{request}'")
            return OperationResult(success=False, message=str(error), error=error)
        return handler(stack, change_set_name)

    def create(self, stack: Stack, change_set_name: str) -> OperationResult:
        return run_operation('create', lambda: self._create(stack, change_set_name), self.log)

    def execute(self, stack: Stack, change_set_name: str) -> OperationResult:
        return run_operation('execute', lambda: self._execute(stack, change_set_name), self.log)

    def list(self, stack: Stack) -> OperationResult:
        return run_operation('list', lambda: self._list(stack), self.log)

    def delete(self, stack: Stack, change_set_name: str) -> OperationResult:
        return run_operation('rm', lambda: self._delete(stack, change_set_name), self.log)

    def describe(self, stack: Stack, change_set_name: str) -> OperationResult:
        return run_operation('desc', lambda: self._describe(stack, change_set_name), self.log)

    def _create(self, stack: Stack, name: str) -> str:
        stack_name = stack.stack_name
        self.log.debug(f"Updated Template:\n{stack.template}")

        template_body, template_url = self._template_source(stack)
        capabilities = required_capabilities(stack.template)

        remote_call(
            'create_change_set', stack_name, self.cfn.create_change_set,
            stack_name, name,
            template_body=template_body,
            template_url=template_url,
            capabilities=capabilities or None,
            change_set=name,
        )
        self._wait_for_change_set(stack_name, name)
        return f"Change-Set [{name}] created for [{stack_name}]"

    def _template_source(self, stack: Stack) -> tuple[Optional[str], Optional[str]]:
        """Return (template_body, template_url); exactly one is set."""
        if not stack.bucket:
            return stack.template, None
        if self.s3 is None:
            raise StackError(f"Bucket [{stack.bucket}] configured but no object store client")

        stack_name = stack.stack_name
        try:
            exists = self.s3.bucket_exists(stack.bucket)
        except Exception as e:
            self.log.warning(f"Received Error when checking if [{stack.bucket}] exists: {e}")
            exists = False

        if not exists:
            self.log.info(f"Creating Bucket [{stack.bucket}]")
            remote_call('create_bucket', stack_name, self.s3.create_bucket, stack.bucket)

        key = template_key(stack_name, self._clock())
        url: str = remote_call('put_object', stack_name, self.s3.put_object,
                               stack.bucket, key, stack.template)
        return None, url

    def _wait_for_change_set(self, stack_name: str, name: str) -> str:
        """Poll until the change-set is CREATE_COMPLETE or FAILED."""
        last_status = None
        while True:
            resp = remote_call('describe_change_set', stack_name,
                               self.cfn.describe_change_set, stack_name, name,
                               change_set=name)
            status = resp.get('Status', '')
            if status != last_status:
                self.log.info(f"Creating Change-Set: [{name}] - {status} - {stack_name}")
                last_status = status

            if status == CREATE_COMPLETE:
                return status
            if status == FAILED:
                raise ChangeSetFailedError(stack_name, name, resp.get('StatusReason', ''))
            if status not in PENDING_STATUSES:
                raise UnknownStatusError(stack_name, name, status)

            time.sleep(self.poll_interval)

    def _execute(self, stack: Stack, name: str) -> str:
        stack_name = stack.stack_name
        session = TailSession(stack=stack, command='UPDATE',
                              since=datetime.now(timezone.utc))
        EventTailer(self.cfn, session, self.tail_interval, self.log).start()
        try:
            remote_call('execute_change_set', stack_name, self.cfn.execute_change_set,
                        stack_name, name, change_set=name)
            remote_call('wait_until_stack_update_complete', stack_name,
                        self.cfn.wait_until_stack_update_complete, stack_name,
                        change_set=name)
        finally:
            session.cancel.send()
        self.log.info(f"Change-Set [{name}] executed: [{stack_name}]")
        return f"Change-Set [{name}] executed on [{stack_name}]"

    def _list(self, stack: Stack) -> str:
        stack_name = stack.stack_name
        summaries = remote_call('list_change_sets', stack_name,
                                self.cfn.list_change_sets, stack_name)
        for s in summaries:
            created = s.creation_time.strftime(RFC850_FORMAT) if s.creation_time else '-'
            self.log.info(f"@{created} - Change-Set: [{s.name}] - Status: [{s.execution_status}]")
        return f"{len(summaries)} change-set(s) for [{stack_name}]"

    def _delete(self, stack: Stack, name: str) -> str:
        stack_name = stack.stack_name
        remote_call('delete_change_set', stack_name, self.cfn.delete_change_set,
                    stack_name, name, change_set=name)
        self.log.info(f"Change-Set: [{name}] deleted")
        return f"Change-Set [{name}] deleted"

    def _describe(self, stack: Stack, name: str) -> str:
        stack_name = stack.stack_name
        resp = remote_call('describe_change_set', stack_name,
                           self.cfn.describe_change_set, stack_name, name,
                           change_set=name)
        print(json.dumps(resp, indent=2, default=str))
        return f"Change-Set [{name}] described"
