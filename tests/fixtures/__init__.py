"""Test fixtures for NutriSync."""

from tests.fixtures.mocks import FakeClock, GatedInferenceClient, MockInferenceClient

__all__ = ["FakeClock", "GatedInferenceClient", "MockInferenceClient"]
