import asyncio
import json
import os
import sys

from collateral_observability.metrics import maybe_start_http_server
from common.logging import configure_logging

from .errors import AllocationError
from .invoker import FUNCTIONS, build_invoker


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(f"Usage: python -m allocation_engine.cli <{'|'.join(FUNCTIONS)}> <args...>")
        sys.exit(1)

    configure_logging(os.getenv("LOG_FORMAT", "text"), service_name="allocation_engine")
    maybe_start_http_server()
    function, args = argv[0], argv[1:]
    try:
        result = asyncio.run(build_invoker().invoke(function, args))
    except AllocationError as exc:
        print(json.dumps(exc.as_payload(), indent=2))
        sys.exit(2)
    print(json.dumps(result, indent=2, default=str))
    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
