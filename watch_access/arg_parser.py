"""
Command-line argument parsing for the watch access CLI.

Parses a small, fixed set of options into a dictionary, rejecting anything
unknown with a hint to use --help.
"""

import sys
from typing import Any, Dict, List, Optional


HELP_TEXT = """\
Usage:
  ./watchctl.py IDENTIFIER [options]
  ./watchctl.py --classify MESSAGE [--status CODE]
  ./watchctl.py --reset-guest-counter [--counter-file PATH]

Resolve a video or share link and walk through the access rules:
owned content plays, free content goes through the guest allowance,
paid content asks to confirm the credit charge.

Options:
  --guest               Ignore WATCH_API_TOKEN and act as a signed-out viewer
  -y, --yes             Confirm credit charges without prompting
  --counter-file PATH   Guest counter file (default from WATCH_GUEST_COUNTER_PATH)
  --classify MESSAGE    Print how an error message would be classified
  --status CODE         HTTP status code to classify together with --classify
  --reset-guest-counter Clear the guest free-watch allowance
  -v, --verbose         Debug logging
  -h, --help            Show this help

Environment:
  WATCH_API_BASE_URL    Backend base URL (required)
  WATCH_API_TOKEN       Bearer token of the signed-in viewer
"""


class WatchArgumentParser:
    """Parses watchctl command-line arguments into a dict."""

    def parse_arguments(self, argv: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Parse command-line arguments.

        Args:
            argv: Argument list; defaults to sys.argv[1:]

        Returns:
            Dictionary of parsed arguments

        Raises:
            ValueError: For unknown options, missing values or a missing identifier
        """
        if argv is None:
            argv = sys.argv[1:]

        if '-h' in argv or '--help' in argv:
            print(HELP_TEXT)
            sys.exit(0)

        result = self._default_result_dict()
        i = 0
        while i < len(argv):
            i = self._handle_option(argv[i], argv, i, result)
            i += 1

        self._validate(result)
        return result

    def _default_result_dict(self) -> Dict[str, Any]:
        return {
            'identifier': None,
            'guest': False,
            'yes': False,
            'verbose': False,
            'counter-file': None,
            'classify': None,
            'status': None,
            'reset-guest-counter': False,
        }

    def _handle_option(self, arg: str, args: List[str], i: int, result: Dict[str, Any]) -> int:
        """Route argument to appropriate handler."""
        boolean_flags = {
            '--guest': 'guest',
            '-y': 'yes',
            '--yes': 'yes',
            '-v': 'verbose',
            '--verbose': 'verbose',
            '--reset-guest-counter': 'reset-guest-counter',
        }
        if arg in boolean_flags:
            result[boolean_flags[arg]] = True
            return i

        if arg in ('--counter-file', '--classify'):
            result[arg.lstrip('-')] = self._parse_string_arg(args, i, arg)
            return i + 1

        if arg == '--status':
            result['status'] = self._parse_int_arg(args, i, arg)
            return i + 1

        if arg.startswith('-'):
            raise ValueError(
                f"Unknown argument: {arg}\n"
                "Tip: Use -h or --help to see all available options"
            )

        if result['identifier'] is not None:
            raise ValueError(f"Unexpected extra argument: {arg}\nOnly one identifier can be resolved at a time")
        result['identifier'] = arg
        return i

    def _validate(self, result: Dict[str, Any]) -> None:
        if result['status'] is not None and result['classify'] is None:
            raise ValueError("--status is only valid together with --classify")
        if result['classify'] is None and not result['reset-guest-counter']:
            identifier = result['identifier']
            if identifier is None or not identifier.strip():
                raise ValueError(
                    "No identifier provided.\n"
                    "Example: ./watchctl.py abc123\n"
                    "         ./watchctl.py --classify 'Insufficient credits' --status 403"
                )

    def _parse_string_arg(self, args: List[str], i: int, flag: str) -> str:
        if i + 1 >= len(args):
            raise ValueError(f"Missing value for {flag}")
        return args[i + 1]

    def _parse_int_arg(self, args: List[str], i: int, flag: str) -> int:
        value = self._parse_string_arg(args, i, flag)
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{flag} expects an integer, got '{value}'")
