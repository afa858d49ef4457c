"""
Run the Sambung Kata HTTP API (see sambung_kata.web for the endpoint list).

Usage: python server.py [--host 0.0.0.0] [--port 8000]
"""
import argparse
import logging

from sambung_kata.web import app

if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--log-level", default="INFO", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # threaded dev server; game state lives on the API's own asyncio loop
    app.run(host=args.host, port=args.port, debug=False, threaded=True)
