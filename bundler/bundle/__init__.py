from .writer import Archive, archive_filename, build_archive
from .fingerprint import fingerprint

__all__ = [
    "Archive",
    "archive_filename",
    "build_archive",
    "fingerprint",
]
