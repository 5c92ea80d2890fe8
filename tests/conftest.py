"""Shared Hypothesis configuration for the test suite."""

from hypothesis import HealthCheck, settings

# Some data strategies filter heavily with assume(); on a cold run the
# too_slow health check can fire before any assertion is evaluated.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")
