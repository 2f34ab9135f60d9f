"""
SD Persistence module.

Datastore engines implementing the sd_common.Datastore interface.
"""

from .sqlite_datastore import SQLiteDatastore

__all__ = ["SQLiteDatastore"]
