#!/usr/bin/env python3
"""
Tests for HandlerOptions resolution.

Run with: pytest tests/test_options.py -v
"""
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in [k for k in os.environ if k.startswith("LAMBDA_PATTERNS_")]:
        monkeypatch.delenv(key)


class TestHandlerOptions:
    """Tests for HandlerOptions."""

    def test_defaults(self):
        from lambda_patterns.app.options import HandlerOptions

        options = HandlerOptions.resolve()
        assert options.should_profile is None
        assert options.profile_strategy is None
        assert options.profile_percentage == 10
        assert options.wait_for_event_loop is True
        assert options.extra == {}
        print("✓ HandlerOptions defaults are defined")

    def test_mapping_overrides_and_extras(self):
        from lambda_patterns.app.options import HandlerOptions, ProfileStrategy

        def policy(handler):
            return True

        options = HandlerOptions.resolve({
            "should_profile": policy,
            "profile_strategy": "percentage",
            "profile_percentage": 25,
            "wait_for_event_loop": False,
            "team": "payments",
        })
        assert options.should_profile is policy
        assert options.profile_strategy == ProfileStrategy.PERCENTAGE
        assert options.profile_percentage == 25
        assert options.wait_for_event_loop is False
        assert options.get("team") == "payments"
        assert options.get("profile_percentage") == 25
        assert options.get("missing", "default") == "default"
        print("✓ HandlerOptions.resolve() merges a mapping")

    def test_default_should_profile_is_used_when_unset(self):
        from lambda_patterns.app.options import HandlerOptions

        def fallback(handler):
            return False

        assert HandlerOptions.resolve({}, default_should_profile=fallback).should_profile is fallback

    def test_environment_variables(self, monkeypatch):
        from lambda_patterns.app.options import HandlerOptions, ProfileStrategy

        monkeypatch.setenv("LAMBDA_PATTERNS_PROFILE_STRATEGY", "ONE_COLD_ONE_WARM")
        monkeypatch.setenv("LAMBDA_PATTERNS_PROFILE_PERCENTAGE", "30")
        monkeypatch.setenv("LAMBDA_PATTERNS_WAIT_FOR_EVENT_LOOP", "false")

        options = HandlerOptions.resolve()
        assert options.profile_strategy == ProfileStrategy.ONE_COLD_ONE_WARM
        assert options.profile_percentage == 30
        assert options.wait_for_event_loop is False

        explicit = HandlerOptions.resolve({"profile_strategy": "ALWAYS", "wait_for_event_loop": True})
        assert explicit.profile_strategy == ProfileStrategy.ALWAYS
        assert explicit.wait_for_event_loop is True
        assert explicit.profile_percentage == 30
        print("✓ Explicit options win over environment variables")

    def test_options_instance(self):
        from lambda_patterns.app.options import HandlerOptions, ProfileStrategy

        given = HandlerOptions(profile_strategy=ProfileStrategy.ALWAYS, extra={"a": 1})
        options = HandlerOptions.resolve(given)
        assert options.profile_strategy == ProfileStrategy.ALWAYS
        assert options.get("a") == 1

    def test_options_instance_wins_over_environment(self, monkeypatch):
        """Test values set on a HandlerOptions instance are kept even when they equal the defaults."""
        from lambda_patterns.app.options import HandlerOptions

        monkeypatch.setenv("LAMBDA_PATTERNS_PROFILE_STRATEGY", "ALWAYS")
        monkeypatch.setenv("LAMBDA_PATTERNS_PROFILE_PERCENTAGE", "50")
        monkeypatch.setenv("LAMBDA_PATTERNS_WAIT_FOR_EVENT_LOOP", "false")

        options = HandlerOptions.resolve(HandlerOptions(profile_percentage=10, wait_for_event_loop=True))
        assert options.profile_percentage == 10
        assert options.wait_for_event_loop is True
        assert options.profile_strategy is None
        print("✓ HandlerOptions instances are not overridden by environment variables")

    @pytest.mark.parametrize("options", [
        {"profile_strategy": "SOMETIMES"},
        {"profile_percentage": 101},
        {"profile_percentage": -1},
        {"profile_percentage": "10"},
        {"profile_percentage": True},
        {"wait_for_event_loop": "false"},
        {"wait_for_event_loop": 0},
        {"should_profile": "yes"},
    ])
    def test_invalid_options(self, options):
        from lambda_patterns.app.options import HandlerOptions
        from lambda_patterns.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            HandlerOptions.resolve(options)

    def test_invalid_environment(self, monkeypatch):
        from lambda_patterns.app.options import HandlerOptions
        from lambda_patterns.exceptions import ConfigurationError

        monkeypatch.setenv("LAMBDA_PATTERNS_PROFILE_PERCENTAGE", "ten")
        with pytest.raises(ConfigurationError):
            HandlerOptions.resolve()

    def test_not_a_mapping(self):
        from lambda_patterns.app.options import HandlerOptions
        from lambda_patterns.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            HandlerOptions.resolve(["ALWAYS"])

    def test_options_are_immutable(self):
        import dataclasses

        from lambda_patterns.app.options import HandlerOptions

        options = HandlerOptions.resolve()
        with pytest.raises(dataclasses.FrozenInstanceError):
            options.profile_percentage = 50
