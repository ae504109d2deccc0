from fpkgi_server.domain.models.catalog_category import CatalogCategory, Region
from fpkgi_server.domain.models.file_entry import FileEntry
from fpkgi_server.domain.models.mapped_path import MappedPath
from fpkgi_server.domain.models.pkg_categories import (
    ContentCategory,
    DrmCategory,
    IroCategory,
)
from fpkgi_server.domain.models.results import (
    BuildResult,
    EventKind,
    ScanDelta,
    WatchEvent,
)

__all__ = [
    "BuildResult",
    "CatalogCategory",
    "ContentCategory",
    "DrmCategory",
    "EventKind",
    "FileEntry",
    "IroCategory",
    "MappedPath",
    "Region",
    "ScanDelta",
    "WatchEvent",
]
