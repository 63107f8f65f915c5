"""Django storage configuration for S3-compatible backends.

Every entry backed by ``FileStorage`` is a disk the file browser can
open. Works with:
- MinIO for local development
- AWS S3, Cloudflare R2 or Supabase storage in production

MinIO, Supabase and IP/localhost endpoints need path-style addressing.
"""

from typing import Any, Final

from server.settings.components import config

# Storage configuration dictionary
# Uses S3-compatible storage for browsed files, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    's3': {
        'BACKEND': 'server.apps.filebrowser.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config('AWS_STORAGE_BUCKET_NAME', default='files'),
            'access_key': config('AWS_ACCESS_KEY_ID', default=None),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'addressing_style': config(
                'AWS_S3_ADDRESSING_STYLE',
                default=None,
            ),
            'signature_version': 's3v4',
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        # Keep static files separate from browsed files
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
