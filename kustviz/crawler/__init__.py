"""Discovery of configuration units, remote (Git providers) or local (in-memory files)."""

from kustviz.crawler.git_crawler import GitCrawler
from kustviz.crawler.local import units_from_local_files

__all__ = [
    "GitCrawler",
    "units_from_local_files",
]
