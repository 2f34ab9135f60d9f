"""
Error taxonomy shared by the model layer and datastore engines.

"Not found" is never an exception: lookups return None and callers check.
"""


class ModelError(Exception):
    """Base class for every error raised by the sd_* packages."""


class ConfigurationError(ModelError):
    """A factory was constructed without a required collaborator."""


class PersistenceError(ModelError):
    """A datastore operation failed."""


class SealingError(ModelError):
    """A value could not be sealed or unsealed."""


class ValidationError(ModelError):
    """The entity schema rejected the shape of a record."""


class UnexpectedResponseError(ModelError, TypeError):
    """The datastore returned a shape the factory does not understand."""


class RelationNotFoundError(ModelError, LookupError):
    """A relation whose absence is invalid could not be resolved."""
