"""Domain errors raised by the catalog, storage and extraction services."""


class CatalogError(Exception):
    """Base class for catalog lookups that cannot be satisfied."""


class DocumentNotFoundError(CatalogError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class UserNotFoundError(CatalogError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class StorageError(Exception):
    """Object storage could not return the requested file."""


class UnsupportedFileTypeError(ValueError):
    """File extension is not one the extractor can read."""


class TextExtractionError(RuntimeError):
    """The file was fetched but its text could not be decoded."""
