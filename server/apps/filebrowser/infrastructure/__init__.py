"""Infrastructure layer for filebrowser app.

This package contains integrations with external systems:
- S3-compatible storage backend (S3/MinIO/R2/Supabase)
- Disk resolution and configuration checks
- Retry policy for store calls
- Metadata helpers (MIME type, file category, upload names)

Keep infrastructure concerns separate from business logic.
"""
