"""Delete / move / create propagated across the input, output and thumbnail trees."""
from .service import LibraryService

__all__ = ["LibraryService"]
