"""
Bulk Mock Demo - Many flaky requests from several threads, no API key needed.

Shows the concurrency ceiling, retries with backoff, and the metrics the
orchestrator records along the way.

Usage:
    python demos/bulk_mock_demo.py
"""

import json
import logging
import random
from concurrent.futures import ThreadPoolExecutor

from openai_orch import CapabilityFailure, ConstantBackoff, RequestFailed
from openai_orch.observability import configure_logging
from openai_orch.orchestrator import create_mock_orchestrator
from openai_orch.requests import CallRecorder, MockRequest


def build_request(n: int, recorder: CallRecorder, rng: random.Random) -> MockRequest:
    failures = rng.choice([0, 0, 1, 2, 4])
    return MockRequest(
        label=f"job-{n}",
        payload={"job": n, "result": n * n},
        outcomes=[CapabilityFailure] * failures,
        delay=rng.uniform(0.01, 0.1),
        recorder=recorder,
    )


def main() -> None:
    configure_logging(level=logging.WARNING)
    rng = random.Random(7)
    recorder = CallRecorder()

    with create_mock_orchestrator(
        max_concurrency=5,
        max_retries=3,
        backoff=ConstantBackoff(0.05),
    ) as orchestrator:

        def run(n: int) -> str:
            handle = orchestrator.clone()
            request_id = handle.submit(build_request(n, recorder, rng))
            try:
                return f"job-{n}: {handle.get_response(request_id)}"
            except RequestFailed as e:
                return f"job-{n}: FAILED ({e.kind.value})"

        with ThreadPoolExecutor(max_workers=8) as pool:
            for line in pool.map(run, range(30)):
                print(line)

        print(f"\npeak concurrent calls: {recorder.peak} (limit 5)")
        print(json.dumps(orchestrator.metrics.to_dict(), indent=2))


if __name__ == "__main__":
    main()
