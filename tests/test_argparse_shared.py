"""Tests for argparse_shared module."""

import argparse

from src.argparse_shared import add_log_level_argument, add_timeout_argument, get_base_parser


class TestGetBaseParser:
    """Tests for get_base_parser function."""

    def test_returns_argument_parser(self):
        """Test that get_base_parser returns an ArgumentParser."""
        parser = get_base_parser()
        assert isinstance(parser, argparse.ArgumentParser)

    def test_has_env_file_argument(self):
        """Test that the parser has -e/--env-file."""
        parser = get_base_parser()
        assert parser.parse_args(["-e", "/path/to/.env"]).env_file == "/path/to/.env"
        assert parser.parse_args(["--env-file", "/custom/.env"]).env_file == "/custom/.env"

    def test_env_file_defaults_to_none(self):
        parser = get_base_parser()
        assert parser.parse_args([]).env_file is None

    def test_custom_description(self):
        parser = get_base_parser("Custom description")
        assert parser.description == "Custom description"


class TestAddLogLevelArgument:
    def test_default_is_info(self):
        parser = get_base_parser()
        add_log_level_argument(parser)
        assert parser.parse_args([]).log_level == "INFO"

    def test_short_form(self):
        parser = get_base_parser()
        add_log_level_argument(parser)
        assert parser.parse_args(["-l", "DEBUG"]).log_level == "DEBUG"


class TestAddTimeoutArgument:
    def test_default_is_none(self):
        parser = get_base_parser()
        add_timeout_argument(parser)
        assert parser.parse_args([]).timeout is None

    def test_parses_integer(self):
        parser = get_base_parser()
        add_timeout_argument(parser)
        assert parser.parse_args(["--timeout", "90"]).timeout == 90
        assert parser.parse_args(["-t", "5"]).timeout == 5
