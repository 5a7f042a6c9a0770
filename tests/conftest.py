"""
Pytest configuration for Imp tests.

Provides:
- Hypothesis profiles ("default", "ci", "dev"), selected with HYPOTHESIS_PROFILE
- Shared program fixtures
"""

import os

import pytest
from hypothesis import settings, HealthCheck

from implang.parser import parse

# Generated programs can take a while to evaluate when loops run to the
# iteration cap, so the per-example deadline is off everywhere.
settings.register_profile(
    "default",
    deadline=None,
    print_blob=True,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.register_profile(
    "ci",
    deadline=None,
    print_blob=True,
    max_examples=300,
    derandomize=True,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.register_profile(
    "dev",
    deadline=None,
    max_examples=20,
)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


COUNTER_SOURCE = """
skip;
x = new 0;
inc = 25;
while *x <= 100 {
    *x = *x + inc;
}
"""


@pytest.fixture
def counter_program():
    """The counting loop from examples/counter.imp."""
    return parse(COUNTER_SOURCE)
