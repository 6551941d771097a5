from bookresolver.sources.base import BookSource
from bookresolver.sources.cache import CacheSource
from bookresolver.sources.central import CentralServiceSource
from bookresolver.sources.google_books import GoogleBooksSource
from bookresolver.sources.open_library import OpenLibrarySource

__all__ = ["BookSource", "CacheSource", "CentralServiceSource", "GoogleBooksSource", "OpenLibrarySource"]
