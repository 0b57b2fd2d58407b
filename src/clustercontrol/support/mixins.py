class StringerMixin:
    """
    Renders the class name with the public attributes, sorted by name.

    >>> class Point(StringerMixin):
    ...     def __init__(self):
    ...         self.y, self.x, self._cache = 2, 'a', None
    >>> str(Point())
    "Point(x='a', y=2)"
    """

    def __str__(self):
        attributes = ", ".join("%s=%r" % (k, v) for k, v in sorted(vars(self).items()) if not k.startswith('_'))
        return "%s(%s)" % (type(self).__name__, attributes)


class ValueEqualityMixin:
    """ Equality for value objects: same type and equal attributes. Such objects are not hashable. """

    def __eq__(self, other):
        return type(other) is type(self) and vars(other) == vars(self)

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = None
