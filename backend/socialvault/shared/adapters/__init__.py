"""
Adapters Package

External service integrations.

Contents:
=========
- storage_adapter: S3 / Cloudflare R2 bucket (signed URLs, objects, deletion)
- sqs_adapter: AWS SQS job queue client
- email_adapter: Amazon SES transactional email

Note: Database access is handled by shared/db/session.py using async SQLAlchemy.

Usage:
======
    from socialvault.shared.adapters.storage_adapter import ObjectStorageAdapter
    from socialvault.shared.adapters.sqs_adapter import SQSAdapter
"""
