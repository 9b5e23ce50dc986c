import argparse

def get_base_parser(description: str = "Podcast feed sync") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)
    return parser

def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-l", "--log-level", help="Set log level (DEBUG, INFO, WARNING, ERROR)", default="INFO")

def add_timeout_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-t", "--timeout", type=int, default=None, help="Sync timeout in seconds (overrides configuration)")
