import argparse
import logging

from sabi.app import GameApp
from sabi.settings import load_settings

def main():
    ap = argparse.ArgumentParser(description="Play a .sabi script")
    ap.add_argument("--config", default="game/config/defaults.yaml")
    ap.add_argument("--chapter", help="override start.chapter")
    ap.add_argument("--act", help="override start.act")
    args = ap.parse_args()

    cfg = load_settings(args.config)
    if args.chapter:
        cfg.start.chapter = args.chapter
    if args.act:
        cfg.start.act = args.act

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    app = GameApp(cfg)
    app.run()

if __name__ == "__main__":
    main()
