"""File browser settings."""

from decouple import Csv

from server.settings.components import config

# Disk used when an upload request names none
FILEBROWSER_DEFAULT_DISK = config('FILEBROWSER_DEFAULT_DISK', default='s3')

# Preview URL lifetime in seconds
FILEBROWSER_PRESIGNED_URL_EXPIRATION = config(
    'FILEBROWSER_PRESIGNED_URL_EXPIRATION',
    cast=int,
    default=3600,
)

# Upload policy, size in kilobytes
FILEBROWSER_MAX_FILE_SIZE = config(
    'FILEBROWSER_MAX_FILE_SIZE',
    cast=int,
    default=2048000,
)
FILEBROWSER_ALLOWED_EXTENSIONS = config(
    'FILEBROWSER_ALLOWED_EXTENSIONS',
    cast=Csv(post_process=tuple),
    default=(
        'mp4,webm,ogg,mov,avi,quicktime,pdf,doc,docx,txt,jpg,jpeg,png,'
        'gif,webp,svg,ppt,pptx,mp3,wav,m4a'
    ),
)

# Whole-disk listing cache
FILEBROWSER_CACHE_ENABLED = config(
    'FILEBROWSER_CACHE_ENABLED',
    cast=bool,
    default=True,
)
FILEBROWSER_CACHE_TTL = config('FILEBROWSER_CACHE_TTL', cast=int, default=300)

# Requests per minute per client
FILEBROWSER_THROTTLE_RATES = {
    'default': config('FILEBROWSER_THROTTLE_DEFAULT', cast=int, default=60),
    'upload': config('FILEBROWSER_THROTTLE_UPLOAD', cast=int, default=10),
}
