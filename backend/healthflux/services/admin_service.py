"""
HealthFlux Backend — Admin Bootstrap
=====================================

What:  Grants role="admin" to the single configured bootstrap account.
Who:   POST /api/admin/bootstrap. The target email comes from
       ADMIN_BOOTSTRAP_EMAIL, never from the request.
"""

import logging
from typing import Any, Dict

from healthflux.exceptions import NotFoundError
from healthflux.schemas.entities import User
from healthflux.services.entity_store import EntityStore

logger = logging.getLogger(__name__)


class AdminBootstrapService:
    def __init__(self, store: EntityStore, bootstrap_email: str):
        self.store = store
        self.bootstrap_email = bootstrap_email

    async def grant_admin(self) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: no registered User with the bootstrap email.
        """
        rows = await self.store.filter("User", {"email": self.bootstrap_email}, limit=1)
        if not rows:
            raise NotFoundError(
                resource="User",
                message=f"User with email {self.bootstrap_email} not found. They need to register first.",
            )

        user = User.model_validate(rows[0])
        await self.store.update("User", user.id, {"role": "admin"})
        logger.warning("Admin role granted to %s (user %s)", user.email, user.id)

        return {
            "success": True,
            "message": f"Successfully granted admin access to {self.bootstrap_email}",
            "user": {
                "id": user.id,
                "email": user.email,
                "full_name": user.full_name,
                "role": "admin",
            },
        }
