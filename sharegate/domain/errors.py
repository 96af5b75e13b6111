"""Domain exceptions.

Policy denials are not exceptions: the access policy returns a ``Deny``
verdict for those. The classes here cover the cases where access could not
be evaluated at all.
"""


class AccessCheckError(Exception):
    """Access could not be evaluated (store unreachable, bad record)."""
    pass


class MalformedTokenRecord(AccessCheckError):
    """A stored token record cannot be interpreted (e.g. unparsable PIN hash)."""
    pass
