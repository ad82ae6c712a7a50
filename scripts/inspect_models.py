import asyncio
import sys

from llm_preflight.client import ModelSourceError
from llm_preflight.naming import categorize_model, format_model_name
from llm_preflight.service import PreflightService


async def main(base_url=None):
    service = PreflightService()
    try:
        models = await service.discover(base_url)
    except ModelSourceError as exc:
        print(f"Could not reach model server: {exc}")
        return 1
    finally:
        await service.aclose()

    print(f"--- Loaded Models ({len(models)} total) ---")
    for m in models:
        print(f"{m.id}: {format_model_name(m.id)} [{categorize_model(m.id).value}]")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
