"""
Readiness JTBD — Domain exceptions.

The HTTP layer maps these onto status codes; services raise them and never
swallow errors coming back from the store.
"""

from __future__ import annotations


class ReadinessError(Exception):
    # Base class for intended, meaningful failures of the force pipeline.
    pass


class EmptyInputError(ReadinessError):
    # Raised when a distribution or aggregation is requested over zero responses.
    pass


class PersistenceError(ReadinessError):
    # Raised when the backing store fails; the original driver error is chained.
    pass


class ClassificationError(ReadinessError):
    # Raised when every model in the classifier chain failed for a response.
    pass
