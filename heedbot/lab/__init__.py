"""Lab — operator tooling for hand-authored message threads."""

from heedbot.lab.examples import example_interest, example_thread
from heedbot.lab.threads import dump_thread, load_thread, parse_thread, request_from_thread

__all__ = [
    "dump_thread",
    "example_interest",
    "example_thread",
    "load_thread",
    "parse_thread",
    "request_from_thread",
]
