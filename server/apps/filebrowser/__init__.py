"""File browser app: folder-style access to S3-compatible disks."""
