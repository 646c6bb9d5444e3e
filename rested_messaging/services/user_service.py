from typing import Any, Dict, Optional

from rested_messaging.repositories.user_mapping_repository import UserMappingRepository


def _mapping_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "oldUserId": doc.get("oldUserId") or doc.get("_id"),
        "newUserId": doc.get("newUserId"),
        "email": doc.get("email"),
        "name": doc.get("name"),
        "createdAt": doc.get("createdAt"),
        "lastUpdated": doc.get("lastUpdated"),
    }


class UserService:
    """Maps user identities between the legacy apps and the new system"""

    def __init__(self, mapping_repository: UserMappingRepository):
        self.mapping_repository = mapping_repository

    async def get_mapping(
        self,
        old_user_id: Optional[str] = None,
        new_user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Look up a mapping
        - oldUserId wins over newUserId, which wins over email
        - no match is a normal answer, not an error
        """
        if not old_user_id and not new_user_id and not email:
            raise ValueError("Must provide oldUserId, newUserId, or email")

        if old_user_id:
            doc = await self.mapping_repository.get_by_old_user_id(old_user_id)
        elif new_user_id:
            doc = await self.mapping_repository.get_by_new_user_id(new_user_id)
        else:
            doc = await self.mapping_repository.get_by_email(email)

        if not doc:
            return {"found": False, "message": "No mapping found"}
        return {"found": True, "mapping": _mapping_view(doc)}

    async def create_mapping(
        self,
        old_user_id: str,
        new_user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create or update a mapping
        - keyed by oldUserId, so repeating the call is harmless
        - createdAt is only written the first time
        """
        if not old_user_id or not new_user_id:
            raise ValueError("Missing required parameters: oldUserId and newUserId")

        await self.mapping_repository.upsert(old_user_id, new_user_id, email=email, name=name)
        return {
            "success": True,
            "message": "User mapping created/updated successfully",
            "mapping": {"oldUserId": old_user_id, "newUserId": new_user_id, "email": email, "name": name},
        }
