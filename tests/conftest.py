"""Shared pytest fixtures for cfn-driver tests."""

import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from clients.base import ChangeSetSummary, StackEvent  # noqa: E402
from stacks import Stack  # noqa: E402
from stacks import tail as tail_module  # noqa: E402


class FakeControlPlane:
    """Recording control plane client.

    Every call is appended to `calls` as (operation, args). Operations named
    in `failures` raise the mapped exception instead.

    Attributes:
        statuses: Change-set statuses returned by successive describes
            (the last one repeats)
        event_batches: Event lists returned by successive fetches
            (the last one repeats)
        exists: Value returned by stack_exists
        on_wait: Called with the stack name inside either stack wait, to
            hold the wait open while the tailer runs
    """

    def __init__(self, statuses=None, event_batches=None, exists=True,
                 summaries=None, failures=None, on_wait=None):
        self.statuses = list(statuses or ['CREATE_COMPLETE'])
        self.event_batches = list(event_batches or [[]])
        self.exists = exists
        self.summaries = summaries or []
        self.failures = failures or {}
        self.on_wait = on_wait
        self.calls: list[tuple[str, tuple]] = []
        self.create_params: dict = {}
        self._describes = 0
        self._fetches = 0

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def names(self, include_fetch=False):
        """Call names in order, optionally including event fetches."""
        return [n for n, _ in self.calls
                if include_fetch or n != 'fetch_recent_stack_events']

    def count(self, name):
        return sum(1 for n, _ in self.calls if n == name)

    def create_change_set(self, stack_name, change_set_name, template_body=None,
                          template_url=None, capabilities=None):
        self.create_params = {
            'template_body': template_body,
            'template_url': template_url,
            'capabilities': capabilities,
        }
        self._record('create_change_set', stack_name, change_set_name)

    def describe_change_set(self, stack_name, change_set_name):
        self._record('describe_change_set', stack_name, change_set_name)
        status = self.statuses[min(self._describes, len(self.statuses) - 1)]
        self._describes += 1
        resp = {
            'StackName': stack_name,
            'ChangeSetName': change_set_name,
            'Status': status,
            'ExecutionStatus': 'AVAILABLE',
            'CreationTime': datetime(2024, 3, 7, 14, 5, tzinfo=timezone.utc),
        }
        if status == 'FAILED':
            resp['StatusReason'] = "The submitted information didn't contain changes."
        return resp

    def list_change_sets(self, stack_name):
        self._record('list_change_sets', stack_name)
        return self.summaries

    def execute_change_set(self, stack_name, change_set_name):
        self._record('execute_change_set', stack_name, change_set_name)

    def delete_change_set(self, stack_name, change_set_name):
        self._record('delete_change_set', stack_name, change_set_name)

    def delete_stack(self, stack_name):
        self._record('delete_stack', stack_name)

    def wait_until_stack_update_complete(self, stack_name):
        self._record('wait_until_stack_update_complete', stack_name)
        if self.on_wait:
            self.on_wait(stack_name)

    def wait_until_stack_delete_complete(self, stack_name):
        self._record('wait_until_stack_delete_complete', stack_name)
        if self.on_wait:
            self.on_wait(stack_name)

    def fetch_recent_stack_events(self, stack_name):
        self._fetches += 1
        self._record('fetch_recent_stack_events', stack_name)
        return self.event_batches[min(self._fetches - 1, len(self.event_batches) - 1)]

    def stack_exists(self, stack_name):
        self._record('stack_exists', stack_name)
        return self.exists


class FakeObjectStore:
    """Recording object store client."""

    def __init__(self, exists=False, failures=None):
        self.exists = exists
        self.failures = failures or {}
        self.calls: list[tuple[str, tuple]] = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def bucket_exists(self, name):
        self._record('bucket_exists', name)
        return self.exists

    def create_bucket(self, name):
        self._record('create_bucket', name)

    def put_object(self, bucket, key, body):
        self._record('put_object', bucket, key, body)
        return f"https://{bucket}.s3.amazonaws.com/{key}"


def make_event(event_id, message='AWS::S3::Bucket - Assets - DELETE_COMPLETE', timestamp=None):
    """Create a StackEvent with a fixed timestamp by default."""
    return StackEvent(
        event_id=event_id,
        timestamp=timestamp or datetime(2024, 3, 7, 14, 5, tzinfo=timezone.utc),
        message=message,
    )


def wait_for(predicate, timeout=5.0):
    """Spin until predicate() is true or timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def event_lines(caplog, command):
    """Logged event lines carrying the given command label."""
    return [r.getMessage() for r in caplog.records if f' - {command} - ' in r.getMessage()]


def make_summary(name, execution_status='AVAILABLE'):
    return ChangeSetSummary(
        name=name,
        creation_time=datetime(2024, 3, 7, 14, 5, tzinfo=timezone.utc),
        execution_status=execution_status,
        status='CREATE_COMPLETE',
    )


@pytest.fixture(autouse=True)
def _reset_active_tailers():
    """Ensure no tailer registration leaks between tests."""
    tail_module._active.clear()
    yield
    tail_module._active.clear()


@pytest.fixture
def stack():
    """Stack with an S3-only inline template."""
    return Stack(
        name='web',
        template='{"Resources": {"Assets": {"Type": "AWS::S3::Bucket"}}}',
    )


@pytest.fixture
def record_cancels(monkeypatch):
    """Record each CancelSignal.send() into a control plane's call log.

    Returns a function that binds the recorder to a FakeControlPlane.
    """
    original_send = tail_module.CancelSignal.send

    def bind(fake):
        def send(self):
            fake.calls.append(('cancel', ()))
            original_send(self)
        monkeypatch.setattr(tail_module.CancelSignal, 'send', send)
        return fake

    return bind


@pytest.fixture
def config_dir(tmp_path):
    """Create a config directory with config.yml and templates.

    Creates:
    - config.yml (project, region, settings, two stacks)
    - templates/web.yaml (S3 bucket)
    - templates/iam.yaml (IAM role)
    """
    (tmp_path / 'templates').mkdir()
    (tmp_path / 'templates/web.yaml').write_text("""
Resources:
  Assets:
    Type: AWS::S3::Bucket
""")
    (tmp_path / 'templates/iam.yaml').write_text("""
Resources:
  AppRole:
    Type: AWS::IAM::Role
""")
    (tmp_path / 'config.yml').write_text("""
project: demo
region: eu-west-1
settings:
  poll_interval: 0
  tail_interval: 0.01
stacks:
  web:
    template: templates/web.yaml
  iam:
    template: templates/iam.yaml
    bucket: my-bucket
""")
    return tmp_path
