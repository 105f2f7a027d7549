"""
Category Factory - Builds category descriptors from configuration.
Makes the set of scraped listings fully config-driven.
"""
import logging
from typing import List

from core.entities import CategoryDescriptor
from core.sites import ALL_SITES
from services.config import CategoryConfig

logger = logging.getLogger(__name__)


def create_categories_from_config(categories_config: List[CategoryConfig]) -> List[CategoryDescriptor]:
    """
    Factory function to create category descriptors from configuration.

    Args:
        categories_config: List of category configurations

    Returns:
        Descriptors for every enabled category with a known site profile.
        An empty list is handled by the orchestrator as a configuration error.
    """
    categories = []

    for config in categories_config:
        if not config.enabled:
            logger.info(f"Category '{config.key}' is disabled, skipping")
            continue

        site = config.site.lower()
        if site not in ALL_SITES:
            logger.error(f"Category '{config.key}' uses unknown site '{config.site}', skipping")
            continue

        if not config.listing_url:
            logger.error(f"Category '{config.key}' has no listing_url, skipping")
            continue

        categories.append(CategoryDescriptor(key=config.key, listing_url=config.listing_url, site=site))
        logger.info(f"Created category: {config.key} ({site})")

    return categories
