"""File discovery: listing with ignore rules, reading with size/mtime."""

from codeweave.index._internal.discovery.scanner import (
    FileContent,
    content_hash,
    file_size,
    list_files,
    read_file,
)

__all__ = [
    "FileContent",
    "content_hash",
    "file_size",
    "list_files",
    "read_file",
]
