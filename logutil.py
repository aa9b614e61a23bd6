import os
import threading
import multiprocessing
import config

_state = threading.local()


def set_region(position):
    _state.region = position


def log(scope, msg, level="INFO"):
    if scope == "MAPGEN" and not getattr(config, "LOG_MAPGEN", True):
        return
    if scope == "LOADER" and not getattr(config, "LOG_LOADER", True):
        return
    if level == "DEBUG" and not getattr(config, "LOG_DEBUG", False):
        return
    pid = os.getpid()
    proc = multiprocessing.current_process().name
    thread = threading.current_thread().name
    region = getattr(_state, "region", None)
    region_tag = f" r{region[0]},{region[1]}" if region is not None else ""
    text = f"[{level}{region_tag} pid{pid} proc{proc} thr{thread} {scope}] {msg}"
    use_color = getattr(config, "LOG_COLOR", True) and os.getenv("NO_COLOR") is None
    if use_color:
        # Main process + main thread: default (no color).
        if proc == "MainProcess" and thread != "MainThread":
            # Main process worker thread.
            text = f"\x1b[32m{text}\x1b[0m"
        elif proc != "MainProcess":
            # Loader worker process.
            text = f"\x1b[33m{text}\x1b[0m"
    print(text)
