"""
Infrastructure layer - external service integrations.

- storage: Object storage (S3-compatible, via boto3)

These wrappers translate backend errors into our own error taxonomy.
"""
