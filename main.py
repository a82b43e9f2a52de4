import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from garmin_uploader.client import GarminClient
from garmin_uploader.config import ClientConfig
from garmin_uploader.models import OperationResult, UserProfileSettings, WeightScaleData
from garmin_uploader.utils import configure_logging, format_report


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload a weigh-in to Garmin Connect")
    parser.add_argument("weight", type=float, help="weight in kg")
    parser.add_argument("--fat", type=float, help="body fat percentage")
    parser.add_argument("--hydration", type=float, help="body water percentage")
    parser.add_argument("--bone-mass", type=float, help="bone mass in kg")
    parser.add_argument("--muscle-mass", type=float, help="muscle mass in kg")
    parser.add_argument("--bmi", type=float)
    parser.add_argument("--gender", default="male", choices=("male", "female"))
    parser.add_argument("--age", type=int, default=30)
    parser.add_argument("--height", type=float, default=180.0, help="height in cm")
    parser.add_argument("--mfa-code", help="MFA code sent by Garmin")
    return parser.parse_args(argv)


async def prompt_mfa_code() -> str | None:
    """Read an MFA code from stdin without blocking the event loop."""
    try:
        code = await asyncio.to_thread(input, "MFA code: ")
    except EOFError:
        logging.error("MFA code requested but stdin is closed")
        return None
    return code.strip() or None


async def run(config: ClientConfig, args: argparse.Namespace) -> OperationResult:
    data = WeightScaleData(
        credentials=config.credentials(),
        timestamp=datetime.now(timezone.utc),
        weight=args.weight,
        percent_fat=args.fat,
        percent_hydration=args.hydration,
        bone_mass=args.bone_mass,
        muscle_mass=args.muscle_mass,
        bmi=args.bmi,
    )
    profile = UserProfileSettings(gender=args.gender, age=args.age, height=args.height)

    async with GarminClient(config) as client:
        result = await client.upload_weight(data, profile)
        if not result.mfa_requested:
            return result
        # the challenge lives in this process only, so ask right away
        code = args.mfa_code or await prompt_mfa_code()
        if code:
            result = await client.upload_weight(data, profile, mfa_code=code)
    return result


def main(argv: list[str] | None = None) -> int:
    configure_logging("garmin_upload.log", truncate=True)
    args = parse_args(argv)

    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        logging.critical(f"{e}. Set them in your environment or .env file.")
        return 2

    if config.credentials() is None:
        logging.critical("Missing Garmin credentials. Please set GARMIN_EMAIL and GARMIN_PASSWORD.")
        return 2

    try:
        result = asyncio.run(run(config, args))
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 130

    print(format_report(result))
    return 0 if result.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
