import argparse
import asyncio
import logging

from dreamlog.core.config import get_settings
from dreamlog.db import init_models
from dreamlog.db.session import create_engine_for


async def main(drop: bool) -> None:
    engine = create_engine_for(get_settings())
    try:
        await init_models(engine, drop=drop)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create DreamLog tables")
    # DEV MODE ONLY
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(args.drop))
