"""Importers from third-party collection formats."""

from awsm_http.importers.postman import (
    import_postman_collection,
    load_postman_collection,
    request_from_postman,
)

__all__ = [
    "import_postman_collection",
    "load_postman_collection",
    "request_from_postman",
]
