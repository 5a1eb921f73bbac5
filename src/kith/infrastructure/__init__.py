from kith.infrastructure.markdown_store import MarkdownFolderStore
from kith.infrastructure.memory_store import InMemoryDocumentStore
from kith.infrastructure.phone import normalize_phone, phone_normalizer
from kith.infrastructure.vcard_sink import FolderVCardSink, InMemoryVCardSink

__all__ = [
    "FolderVCardSink",
    "InMemoryDocumentStore",
    "InMemoryVCardSink",
    "MarkdownFolderStore",
    "normalize_phone",
    "phone_normalizer",
]
