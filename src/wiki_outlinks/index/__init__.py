from .outlink_index import OutlinkIndex, milne_witten
from .storage import read_sqlite, write_grouped_links_tsv, write_sqlite
from .store import OutlinkStore

__all__ = [
    "OutlinkIndex",
    "OutlinkStore",
    "milne_witten",
    "read_sqlite",
    "write_grouped_links_tsv",
    "write_sqlite",
]
