"""
Google user profile connector
"""
from typing import Any, Dict

from analytics_hub.connectors.base_connector import BaseConnector
from analytics_hub.utils.logger import log


class ProfileConnector(BaseConnector):
    """Connector for the OAuth2 userinfo endpoint"""

    API_NAME = "oauth2"
    API_VERSION = "v2"

    def __init__(self, access_token: str = None, **kwargs):
        super().__init__("Google Profile", access_token, **kwargs)

    async def get_user_profile(self) -> Dict[str, Any]:
        """Fetch id, name and email of the signed-in user"""
        service = self.connect()
        profile = await self._execute(service.userinfo().get(), "userinfo")
        log.info(f"Fetched user profile: id={profile.get('id')} email={profile.get('email')}")
        return profile
