import os
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional

logger = logging.getLogger("route_assets_service")

def _json_serial(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Type {type(obj)} not serializable")

class ResultWriter:
    def __init__(self, base_dir: str = "output"):
        self.base_dir = base_dir

    def save_result(self, run_id: str, data: Dict[str, Any]) -> Optional[str]:
        """
        Saves a routing run report to <base_dir>/<YYYY-MM-DD>/<run_id>.json
        """
        try:
            today = datetime.now().strftime("%Y-%m-%d")
            output_dir = os.path.join(self.base_dir, today)
            if not os.path.exists(output_dir):
                os.makedirs(output_dir)
                logger.info(f"Created output directory: {output_dir}")

            filepath = os.path.join(output_dir, f"{run_id}.json")
            with open(filepath, "w") as f:
                json.dump(data, f, indent=4, default=_json_serial)

            logger.info(f"Saved routing results to: {filepath}")
            return filepath
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save routing results: {e}")
            return None
