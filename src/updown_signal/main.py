import argparse
import asyncio

from rich import print

from updown_signal.config import load_config
from updown_signal.loop import build_loop
from updown_signal.render import render_frame


async def _run(cfg: dict, once: bool):
    loop = build_loop(cfg)
    if not once:
        await loop.run_forever()
        return
    record = await loop.run_cycle()
    if record is not None:
        print(render_frame(record))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="config/default.yaml")
    parser.add_argument("--once", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config)
    try:
        asyncio.run(_run(cfg, args.once))
    except KeyboardInterrupt:
        print("[yellow]stopped[/yellow]")


if __name__ == "__main__":
    main()
