"""
Site configuration document: home page content, announcement bar and the
checkout reference data (wilayas, communes, delivery companies).
"""

from typing import Optional

from config import SITE_LOGO_URL
from config_store import SITE_CONFIG_KEY, ConfigStore
from models import SiteConfig

# Flags only count as content when switched on.
_FLAGS = ("announcement_enabled", "lingerie_hero_enabled")


def is_blank(document: dict) -> bool:
    """True when every tracked field is unset, empty, zero or a false flag."""
    for key, value in document.items():
        if key in _FLAGS:
            if value is True:
                return False
        elif value:
            return False
    return True


class SiteConfigService:
    def __init__(self, store: ConfigStore, logo_override: Optional[str] = None):
        self.store = store
        self.logo_override = SITE_LOGO_URL if logo_override is None else logo_override

    def get(self) -> Optional[dict]:
        document = dict(self.store.get(SITE_CONFIG_KEY) or {})
        if self.logo_override:
            document["logo_url"] = self.logo_override
        if is_blank(document):
            return None
        return document

    def public_view(self) -> SiteConfig:
        return SiteConfig.model_validate(self.get() or {})

    def update(self, changes: SiteConfig) -> Optional[dict]:
        """Shallow merge: keys sent replace, keys left out are kept."""
        document = dict(self.store.get(SITE_CONFIG_KEY) or {})
        for key, value in changes.model_dump(mode="json", exclude_unset=True).items():
            if isinstance(value, str):
                value = value.strip()
            if value is None or value == "":
                document.pop(key, None)
            else:
                document[key] = value

        stored = None if is_blank(document) else document
        self.store.put(SITE_CONFIG_KEY, stored)
        return stored
