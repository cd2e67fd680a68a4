"""
Database module: session management and the metadata store.
"""
from storage_lifecycle.db.metadata_store import MetadataStore
from storage_lifecycle.db.session import check_db_connection, create_session_factory, init_db

__all__ = ["MetadataStore", "check_db_connection", "create_session_factory", "init_db"]
