"""
User profiles kept by the users data service
"""

from datetime import datetime, timezone
from typing import List

from energy_sync.events.models import UserPayload
from energy_sync.repositories.base import ProjectionRepository


class UserProfileRepository(ProjectionRepository):
    """Denormalized name / email / avatar copy of identity users"""

    collection_name = "users"
    key_field = "user_id"

    async def create(self, payload: UserPayload) -> bool:
        return await self._insert_ignore({
            "user_id": payload.id,
            "name": payload.name,
            "email": payload.email,
            "avatar_url": payload.avatar_url,
            "created_at": datetime.now(timezone.utc),
        })

    async def update(self, payload: UserPayload) -> bool:
        """Overwrite profile fields; unknown ids are left alone"""
        result = await self.collection.update_one(
            {"user_id": payload.id},
            {"$set": {
                "name": payload.name,
                "email": payload.email,
                "avatar_url": payload.avatar_url,
            }},
        )
        return result.matched_count > 0

    async def delete(self, entity_id: int) -> bool:
        result = await self.collection.delete_one({"user_id": entity_id})
        return result.deleted_count > 0

    async def list_all(self) -> List[dict]:
        cursor = self.collection.find({}, {"_id": 0, "user_id": 1, "name": 1, "created_at": 1})
        return await cursor.to_list(length=None)
