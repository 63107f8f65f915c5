"""Business logic layer for filebrowser app.

This package contains the folder-style view over a flat object store:
- Path sanitization
- Folder projection, tree building and pagination
- Catalog operations (list, upload, rename, move, copy, delete)
- Per-disk listing cache

Views only validate requests and delegate here.
"""
