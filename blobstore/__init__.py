"""
blobstore - a bucket-scoped object storage client.

This package contains:
- infrastructure.storage: the BlobStoreClient protocol, the S3-compatible
  implementation and an in-memory mock
- config: settings and logging setup
- dependencies: wiring from settings to a ready client
"""

__version__ = "0.1.0"
