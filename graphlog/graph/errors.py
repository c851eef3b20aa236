"""Errors raised by the graph layer."""


class PersistenceError(Exception):
    """Exception raised when a node cannot be written to Neo4j.

    Wraps driver errors (network, authentication, constraint violations)
    and schema validation failures. Never retried.
    """

    pass


__all__ = ["PersistenceError"]
