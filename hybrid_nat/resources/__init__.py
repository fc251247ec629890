#
# Copyright (C) 2023 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#

"""Resources managed in the cloud project."""

from typing import ClassVar, List

from hybrid_nat.objects import Object


def key(kind: str, name: str) -> str:
    """Returns the key addressing a resource in a plan."""
    return f"{kind}/{name}"


class Resource(Object):
    """A resource which can be reconciled.

    ``after`` lists additional keys the resource must be created after
    (and deleted before), on top of the ones implied by its fields.
    """
    kind: ClassVar[str] = "resource"
    name: str
    after: List[str] = []

    def __hash__(self):
        return hash(self.key)

    @property
    def key(self) -> str:
        return key(self.kind, self.name)

    def requires(self) -> List[str]:
        """Returns the keys of the resources this one depends on."""
        return list(self.after)
