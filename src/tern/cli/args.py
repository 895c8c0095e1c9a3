"""Command-line arguments for tern."""

import argparse

from tern import __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="tern",
        description="tern: AI assistant for your terminal",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-m", "--model", help="Model ID in LiteLLM format (example: openai/gpt-4o)")
    parser.add_argument(
        "-p",
        "--prompt",
        help="Run a single prompt non-interactively; appended to piped stdin if any",
    )
    parser.add_argument(
        "-i",
        "--prompt-interactive",
        help="Run the given prompt, then continue in interactive mode",
    )
    parser.add_argument(
        "-s",
        "--sandbox",
        nargs="?",
        const=True,
        default=None,
        help="Run in a sandbox; optionally name the command (docker, podman, sandbox-exec)",
    )
    parser.add_argument("--sandbox-image", help="Sandbox image or seatbelt profile to use")
    parser.add_argument(
        "-e",
        "--extensions",
        action="append",
        help="Only enable the named extensions (repeatable; 'none' disables all)",
    )
    parser.add_argument(
        "-l",
        "--list-extensions",
        action="store_true",
        help="List installed extensions and exit",
    )
    parser.add_argument("--max-heap-size", type=int, help=argparse.SUPPRESS)
    return parser


def parse_arguments(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)
