""" How many test files to preprocess at once and the thread pool that does it """
import concurrent.futures

import psutil


def _cpu_count():
    """ The number of CPUs this process is allowed to run on """
    try:
        return len(psutil.Process().cpu_affinity())
    except (AttributeError, psutil.Error, OSError):
        # cpu_affinity isn't supported on Darwin
        pass
    return psutil.cpu_count() or 4


def add_arguments(cap):
    cap.add(
        "-j",
        "--jobs",
        "--parallel",
        dest="parallel",
        type=int,
        default=_cpu_count(),
        help="Sets the number of test files to preprocess in parallel.",
    )


def run(func, items, parallel):
    """ Call func(item) for every item using up to parallel threads.
        Yields (item, future) pairs in the order the calls finish.
        Calling future.result() raises whatever func raised.
    """
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, parallel)) as executor:
        futures = {executor.submit(func, item): item for item in items}
        for future in concurrent.futures.as_completed(futures):
            yield futures[future], future
