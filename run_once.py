import sys, os
import asyncio
import argparse
import logging
import pathlib

# Ensure we are in the correct directory regardless of how this is called
SCRIPT_DIR = str(pathlib.Path(__file__).parent.absolute())
sys.path.insert(0, SCRIPT_DIR)

from dotenv import load_dotenv
load_dotenv()

from models.errors import SubmissionFailed

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger("route_assets_service")

async def main(csv_path: str, input_symbol: str):
    from app import build_service
    service = build_service()
    await service.set_input_asset(input_symbol)

    report = await service.load_path(csv_path)
    print(f"Loaded {report.loaded} recipients ({report.address_invalid} invalid address, "
          f"{len(report.skipped_rows)} skipped rows)")

    # Push one reserves tick per subscribed asset so swaps are routable
    for address in service.subscriptions.asset_addresses():
        service.chain_client.emit_reserves(address, {"rate": "1"})

    try:
        result = await service.run_assets_routing()
        print(f"Run {result.run_id}: {len(result.succeeded)} succeeded, "
              f"{len(result.failed)} failed, {len(result.unrouted)} unrouted")
    except SubmissionFailed as e:
        print(f"Transfer batch failed: {e}")
    finally:
        service.cancel_processing()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Route one recipients CSV against the in-process mock chain.")
    parser.add_argument("csv_path")
    parser.add_argument("--input-asset", default=os.getenv("INPUT_ASSET_SYMBOL", "XOR"))
    args = parser.parse_args()
    asyncio.run(main(args.csv_path, args.input_asset))
