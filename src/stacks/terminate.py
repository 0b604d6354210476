"""Stack termination with background event tailing."""

import logging
from datetime import datetime, timezone
from typing import Optional

from clients.base import ControlPlaneClient
from common import OperationResult, StackError, remote_call, run_operation
from stacks.stack import Stack
from stacks.tail import EventTailer, TailSession

logger = logging.getLogger(__name__)

# Termination phases
NOT_STARTED = 'NOT_STARTED'
TAILING_STARTED = 'TAILING_STARTED'
MUTATION_ISSUED = 'MUTATION_ISSUED'
MUTATION_FAILED = 'MUTATION_FAILED'
WAITING = 'WAITING'
WAIT_FAILED = 'WAIT_FAILED'
WAIT_COMPLETE = 'WAIT_COMPLETE'


class TerminationOrchestrator:
    """Deletes stacks and waits for deletion to complete.

    Attributes:
        cfn: Control plane client
        tail_interval: Seconds between event fetches
        phase: Phase reached by the most recent terminate() call
    """

    def __init__(self, cfn: ControlPlaneClient, tail_interval: float = 1.0,
                 log: Optional[logging.Logger] = None):
        self.cfn = cfn
        self.tail_interval = tail_interval
        self.log = log or logger
        self.phase = NOT_STARTED

    def terminate(self, stack: Stack) -> OperationResult:
        """Delete a stack. A stack that does not exist is a successful no-op."""
        return run_operation('terminate', lambda: self._terminate(stack), self.log)

    def _terminate(self, stack: Stack) -> str:
        stack_name = stack.stack_name
        self.phase = NOT_STARTED
        self.log.debug(f"terminate called for: [{stack.name}]")

        if not remote_call('stack_exists', stack_name, self.cfn.stack_exists, stack_name):
            self.log.info(f"{stack.name}: does not exist...")
            return f"{stack_name}: does not exist"

        session = TailSession(stack=stack, command='DELETE',
                              since=datetime.now(timezone.utc))
        EventTailer(self.cfn, session, self.tail_interval, self.log).start()
        self.phase = TAILING_STARTED

        try:
            self.phase = MUTATION_ISSUED
            try:
                remote_call('delete_stack', stack_name, self.cfn.delete_stack, stack_name)
            except StackError as e:
                self.phase = MUTATION_FAILED
                raise StackError(f"Deleting failed: {e}") from e

            self.phase = WAITING
            try:
                remote_call('wait_until_stack_delete_complete', stack_name,
                            self.cfn.wait_until_stack_delete_complete, stack_name)
            except StackError:
                self.phase = WAIT_FAILED
                raise
            self.phase = WAIT_COMPLETE
        finally:
            session.cancel.send()

        self.log.info(f"deletion successful: [{stack_name}]")
        return f"deletion successful: [{stack_name}]"
