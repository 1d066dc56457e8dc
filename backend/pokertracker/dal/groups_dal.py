"""Read-only access to the groups collection.

Groups are owned by the membership collaborator; the ledger only needs
to know who may join a group's games and act as its bank.
"""

import logging
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger("pokertracker.dal.groups")

COLLECTION = "groups"


class GroupDAL:
    """Data access layer for the groups collection (reads only)."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    async def get_by_id(self, group_id: str) -> Optional[dict]:
        """Find a group document by ``_id``.

        Accepts either an ObjectId string or a plain string id, since
        groups are created outside this service.
        """
        doc = None
        if ObjectId.is_valid(group_id):
            doc = await self._collection.find_one({"_id": ObjectId(group_id)})
        if doc is None:
            doc = await self._collection.find_one({"_id": group_id})
        return doc

    async def get_members(self, group_id: str) -> Optional[set[str]]:
        """Return the group's member ids, or None if the group is unknown."""
        doc = await self.get_by_id(group_id)
        if doc is None:
            return None
        return {str(m) for m in doc.get("members", [])}
