"""
Bounded-parallelism helper shared by the media parser and the backup engine.

Jobs are consumed lazily from any iterable, so a producer (e.g. a directory
walk) keeps feeding the pool while workers run. A failing job never stops its
siblings; every outcome is returned once the pool has drained.
"""
import itertools
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class JobResult(Generic[T]):
    job: T
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_workers(requested: int, default: int) -> int:
    """Non-positive sizes are not meaningful and fall back to the default."""
    return requested if requested > 0 else default


def run_pool(
    jobs: Iterable[T],
    work: Callable[[T], Any],
    max_workers: int,
    thread_name_prefix: str = "pics-worker",
) -> List[JobResult[T]]:
    """
    Run work(job) for every job on at most max_workers threads and block until
    all have finished. Results are in completion order.
    """
    job_iter = iter(jobs)
    try:
        first = next(job_iter)
    except StopIteration:
        return []

    results: List[JobResult[T]] = []
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix) as executor:
        futures = {
            executor.submit(work, job): job
            for job in itertools.chain([first], job_iter)
        }
        for future in as_completed(futures):
            job = futures[future]
            try:
                value = future.result()
            except Exception as e:
                results.append(JobResult(job=job, error=e))
            else:
                results.append(JobResult(job=job, value=value))
    return results


def failures(results: Iterable[JobResult[T]]) -> List[JobResult[T]]:
    return [r for r in results if not r.ok]
