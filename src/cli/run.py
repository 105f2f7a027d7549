import asyncio
from datetime import date
import logging
import time

from services.config import load_config
from services.logging import setup_logging
from browser.factory import open_browser
from workflows.pipeline_factory import create_categories_from_config
from workflows.session import SessionOrchestrator
from delivery.file_delivery import FileDelivery
from delivery.base import DeliveryChannel


async def main() -> None:
    start_time = time.perf_counter()

    config = load_config()
    setup_logging(config.log_level.upper())
    logger = logging.getLogger(__name__)

    today = date.today().isoformat()

    logger.info("Starting extraction run")

    # ----------------------------
    # Resolve categories from config
    # ----------------------------
    categories = create_categories_from_config(config.categories)
    logger.info(f"Resolved {len(categories)} categories from config")

    deliveries = list[DeliveryChannel]([FileDelivery(config.output_dir)])

    # ----------------------------
    # Execute the session
    # ----------------------------
    async with open_browser(config.browser) as (page, page_factory):
        orchestrator = SessionOrchestrator(
            page,
            run_config=config.run,
            scoring_config=config.scoring,
            page_factory=page_factory,
        )
        session = await orchestrator.run(categories)

    if not session.collected:
        logger.info("No items collected")

    for delivery in deliveries:
        try:
            await delivery.deliver(run_date=today, session=session)
            logger.info(f"Delivered {len(session.collected)} items via {delivery.name}")
        except Exception as e:
            logger.error(f"Delivery failed: channel={delivery.name}, error={e}")

    logger.info("Extraction run completed")
    end_time = time.perf_counter()
    logger.info(f"Total time: {end_time - start_time}")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
