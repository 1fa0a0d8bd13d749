"""
Data model for discovered URLs.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any


# Fields a record update may touch; id and url are immutable.
UPDATABLE_FIELDS = ('title', 'body', 'depth', 'linked_from', 'crawled')


@dataclass
class URLRecord:
    """One row of the link graph: a URL and its crawl state."""
    url: str
    depth: int = 0
    title: Optional[str] = None
    body: Optional[str] = None
    linked_from: Optional[int] = None
    crawled: bool = False
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'url': self.url,
            'title': self.title,
            'body': self.body,
            'depth': self.depth,
            'linked_from': self.linked_from,
            'crawled': self.crawled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'URLRecord':
        """Create URLRecord from dictionary."""
        linked_from = data.get('linked_from')
        record_id = data.get('id')
        return cls(
            url=data['url'],
            depth=int(data.get('depth', 0)),
            title=data.get('title'),
            body=data.get('body'),
            linked_from=int(linked_from) if linked_from is not None else None,
            crawled=bool(data.get('crawled', False)),
            id=int(record_id) if record_id is not None else None,
        )
