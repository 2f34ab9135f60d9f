"""
SD Common module.

This module contains the entity schemas, the collaborator interfaces
(datastore, SCM provider, executor) and the error taxonomy used across
the sd_* packages.

The common module has no dependencies on other sd_* modules, making it
a pure contract layer that can be imported by any component.
"""

from .datastore import Datastore
from .errors import (
    ConfigurationError,
    ModelError,
    PersistenceError,
    RelationNotFoundError,
    SealingError,
    UnexpectedResponseError,
    ValidationError,
)
from .executor import Executor
from .schema import MODELS, ModelSchema, get_schema
from .scm import ScmProvider

__all__ = [
    "MODELS",
    "ConfigurationError",
    "Datastore",
    "Executor",
    "ModelError",
    "ModelSchema",
    "PersistenceError",
    "RelationNotFoundError",
    "ScmProvider",
    "SealingError",
    "UnexpectedResponseError",
    "ValidationError",
    "get_schema",
]
