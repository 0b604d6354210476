"""boto3-backed object store client for template uploads."""

import logging
from typing import Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = ('404', 'NoSuchBucket', 'NotFound')


class S3Client:
    """Thin adapter over a boto3 S3 client."""

    def __init__(self, client, region: Optional[str] = None):
        self._client = client
        self.region = region

    def bucket_exists(self, name: str) -> bool:
        """Return False when the bucket is missing; raise on other errors."""
        try:
            self._client.head_bucket(Bucket=name)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in _MISSING_BUCKET_CODES:
                return False
            raise
        return True

    def create_bucket(self, name: str) -> None:
        params: dict = {'Bucket': name}
        if self.region and self.region != 'us-east-1':
            params['CreateBucketConfiguration'] = {'LocationConstraint': self.region}
        self._client.create_bucket(**params)

    def put_object(self, bucket: str, key: str, body: str) -> str:
        self._client.put_object(Bucket=bucket, Key=key, Body=body.encode('utf-8'))
        url = f"https://{bucket}.s3.amazonaws.com/{key}"
        logger.debug(f"Uploaded template to {url}")
        return url
