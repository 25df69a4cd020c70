"""Shared testing helpers for the feed generator test suite."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

__all__ = [
    "FakeAcquirer",
    "FakeClock",
    "FakeScraper",
    "make_driver",
    "ECA_LISTING",
]


_EXPORTS: dict[str, tuple[str, str]] = {
    "FakeAcquirer": ("tests.helpers.externals", "FakeAcquirer"),
    "FakeClock": ("tests.helpers.externals", "FakeClock"),
    "FakeScraper": ("tests.helpers.externals", "FakeScraper"),
    "make_driver": ("tests.helpers.externals", "make_driver"),
    "ECA_LISTING": ("tests.helpers.pages", "ECA_LISTING"),
}


def __getattr__(name: str):
    if name not in _EXPORTS:
        raise AttributeError(name)

    module_name, attribute = _EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attribute)
    globals()[name] = value
    return value


if TYPE_CHECKING:  # pragma: no cover - import-time hinting only
    from tests.helpers.externals import (  # noqa: F401
        FakeAcquirer,
        FakeClock,
        FakeScraper,
        make_driver,
    )
    from tests.helpers.pages import ECA_LISTING  # noqa: F401
