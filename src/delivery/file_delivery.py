"""
File delivery channel
"""
import json
from pathlib import Path

from core.entities import ExtractionSession
from delivery.base import DeliveryChannel


class FileDelivery(DeliveryChannel):
    name = "file"

    def __init__(self, output_dir: str = "output"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, run_date: str) -> Path:
        return self.output_dir / f"extraction_{run_date}.json"

    async def deliver(
        self,
        *,
        run_date: str,
        session: ExtractionSession,
    ) -> None:
        self.path_for(run_date).write_text(
            json.dumps(
                session.to_dict(),
                indent=2,
                ensure_ascii=False,
            ),
            encoding="utf-8",
        )
