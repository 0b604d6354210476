"""Control plane and object store clients."""

from typing import Optional

import boto3

from clients.base import (
    CAPABILITY_IAM,
    CAPABILITY_NAMED_IAM,
    ChangeSetSummary,
    ControlPlaneClient,
    ObjectStoreClient,
    StackEvent,
)
from clients.cloudformation import CloudFormationClient
from clients.s3 import S3Client


def build_clients(region: Optional[str] = None,
                  profile: Optional[str] = None) -> tuple[CloudFormationClient, S3Client]:
    """Create CloudFormation and S3 adapters sharing one boto3 session."""
    session = boto3.session.Session(profile_name=profile, region_name=region)
    return (
        CloudFormationClient(session.client('cloudformation')),
        S3Client(session.client('s3'), region=session.region_name),
    )


__all__ = [
    'CAPABILITY_IAM',
    'CAPABILITY_NAMED_IAM',
    'ChangeSetSummary',
    'ControlPlaneClient',
    'ObjectStoreClient',
    'StackEvent',
    'CloudFormationClient',
    'S3Client',
    'build_clients',
]
