"""Run one guarded flow from the command line.

Usage:
    python -m rfp_triage pricing examples/pricing.json
    python -m rfp_triage serve --port 8000
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rfp_triage.config.settings import settings
from rfp_triage.core.logging import get_logger, setup_logging
from rfp_triage.flows import FLOW_INPUTS, FLOWS
from rfp_triage.llm.generate import StructuredGenerator

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rfp-triage", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    for name in FLOWS:
        flow_parser = sub.add_parser(name, help=f"run the {name} flow")
        flow_parser.add_argument("input", type=Path, help="JSON file with the flow input ('-' for stdin)")
        flow_parser.add_argument("--timeout-ms", type=int, default=None, help="override the flow's budget")

    serve = sub.add_parser("serve", help="start the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def _read_input(path: Path) -> dict:
    if str(path) == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def _run_flow(name: str, payload: dict, timeout_ms: Optional[int]) -> dict:
    request = FLOW_INPUTS[name].model_validate(payload)
    result = await FLOWS[name](request, StructuredGenerator.from_settings(), timeout_ms=timeout_ms)
    return {
        "result": result.value.model_dump(by_alias=True),
        "degraded": result.degraded,
        "cause": result.cause.kind.value if result.cause else None,
        "cause_details": result.cause.details if result.cause else None,
    }


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn

        from rfp_triage.api.app import app

        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    output = asyncio.run(_run_flow(args.command, _read_input(args.input), args.timeout_ms))
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
