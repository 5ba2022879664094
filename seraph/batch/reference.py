#!/usr/bin/env python
# -*- encoding: utf-8 -*-

# Copyright 2011-2020, Nigel Small
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Client-side handles for entities that do not yet exist.

Every recording call made against a :class:`.Transaction` is given a
contiguous run of job slots by the transaction's
:class:`.ReferenceTable`, and the caller receives a :class:`.Reference`
to that run. A reference can be passed to later calls in the same
transaction (where it is encoded as a back-reference to the job that
will produce the entity) and used after commit to look up the
materialised value.

Arguments to recording calls are modelled as the tagged union
:class:`.Literal` | :class:`.Ref`, so the encoder never has to guess
whether an integer is a node id or a job index.
"""


from collections import namedtuple

from seraph.batch.error import InvalidReferenceError, UnresolvedReferenceError


__all__ = ["Reference", "ReferenceTable", "Literal", "Ref", "argument", "reshape"]


class Reference(object):
    """ Handle for the eventual result of one or more jobs.

    :ivar first: index of the first job slot covered
    :ivar count: number of job slots covered
    :ivar shape: :const:`None` for a scalar call, ``(k,)`` for a group
        of `k` values, or ``(m, n)`` for an `m` by `n` cross product
    """

    def __init__(self, table, first, count=1, shape=None):
        self.table = table
        self.first = first
        self.count = count
        self.shape = shape

    def __repr__(self):
        if self.shape is None:
            return "<Reference {%d}>" % self.first
        return "<Reference {%d..%d} shape=%r>" % (self.first, self.first + self.count - 1,
                                                   self.shape)

    @property
    def slots(self):
        return range(self.first, self.first + self.count)

    @property
    def is_group(self):
        return self.shape is not None

    def expand(self):
        """ Split this reference into one scalar reference per job slot,
        in slot order.
        """
        if not self.is_group:
            return [self]
        return [Reference(self.table, slot) for slot in self.slots]


class Literal(namedtuple("Literal", ["value"])):
    """ An argument supplied as a concrete value, such as a node id or
    a node object carrying one.
    """


class Ref(namedtuple("Ref", ["reference"])):
    """ An argument supplied as a reference to a job recorded earlier
    in the same transaction.
    """

    @property
    def slot(self):
        return self.reference.first


def argument(obj):
    """ Tag a caller-supplied value as a :class:`.Literal` or
    :class:`.Ref`. Values already tagged are returned unchanged.
    """
    if isinstance(obj, (Literal, Ref)):
        return obj
    if isinstance(obj, Reference):
        return Ref(obj)
    return Literal(obj)


def reshape(values, shape):
    """ Arrange a flat list of values into the shape a recording call
    would have returned outside a transaction.
    """
    values = list(values)
    if shape is None:
        if len(values) != 1:
            raise ValueError("Scalar shape requires exactly one value, not %d" % len(values))
        return values[0]
    elif len(shape) == 1:
        return values
    else:
        rows, columns = shape
        return [values[i * columns:(i + 1) * columns] for i in range(rows)]


class ReferenceTable(object):
    """ Allocator and resolver of references within one transaction.

    Slots are allocated in recording order starting at zero and are
    never reused. Once the owning transaction has committed, the table
    holds the hydrated value of every slot and can resolve any
    reference it issued.
    """

    def __init__(self):
        self.__size = 0
        self.__slot_values = None
        self.__bound = {}

    def __len__(self):
        return self.__size

    @property
    def resolved(self):
        return self.__slot_values is not None

    def allocate(self, count=1, shape=None):
        """ Allocate `count` contiguous job slots and return a reference
        covering them.
        """
        if count < 0:
            raise ValueError("Cannot allocate a negative number of slots")
        if shape is None and count != 1:
            raise ValueError("Scalar references cover exactly one slot")
        ref = Reference(self, self.__size, count, shape)
        self.__size += count
        return ref

    def check(self, ref):
        """ Ensure that `ref` was issued by this table and covers only
        slots that have already been allocated.
        """
        if not isinstance(ref, Reference):
            raise TypeError("Expected a Reference, not %r" % (ref,))
        if ref.table is not self:
            raise InvalidReferenceError("%r belongs to a different transaction" % ref)
        if ref.first < 0 or ref.first + ref.count > self.__size:
            raise InvalidReferenceError("%r points to a job that has not been recorded" % ref)
        return ref

    def bind(self, slot_values):
        """ Store the hydrated value of every slot, in slot order.
        """
        slot_values = list(slot_values)
        if len(slot_values) != self.__size:
            raise ValueError("Expected %d slot values, received %d" % (self.__size,
                                                                       len(slot_values)))
        self.__slot_values = slot_values

    def bind_reference(self, ref, value):
        """ Record the value delivered for a call-site reference.
        """
        self.check(ref)
        self.__bound[id(ref)] = (ref, value)

    def resolve(self, ref):
        """ Return the materialised value for `ref`.

        :raises UnresolvedReferenceError: if the owning transaction has
            not yet committed successfully
        """
        self.check(ref)
        if self.__slot_values is None:
            raise UnresolvedReferenceError("%r cannot be resolved before commit" % ref)
        try:
            _, value = self.__bound[id(ref)]
        except KeyError:
            return reshape(self.__slot_values[ref.first:ref.first + ref.count], ref.shape)
        else:
            return value
