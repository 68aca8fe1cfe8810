"""
Operator confirmation hooks.

Strategies and pre-flight ask yes/no questions at policy points (continue
after a failure, continue after the canary). The presentation layer decides
how they are answered.
"""

from typing import Callable

Confirm = Callable[[str], bool]


def assume_yes(question: str) -> bool:
    return True


def assume_no(question: str) -> bool:
    return False
