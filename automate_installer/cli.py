"""
Command-line front end.

Presentation layer for the installer: builds an InstallConfig from
arguments, shows the capability checklist, optionally installs missing
tools, then runs the orchestrator and renders its progress events.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from automate_installer import __version__
from automate_installer.api_keys import validate_api_key
from automate_installer.config import Settings, settings as default_settings
from automate_installer.exceptions import DependencyInstallFailure, StepFailure
from automate_installer.installer import DependencyInstaller
from automate_installer.models import SKIP, CapabilityCheck, InstallConfig, ProgressEvent
from automate_installer.orchestrator import InstallOrchestrator
from automate_installer.prober import CapabilityProber

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


# ANSI color codes
class Color:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    GRAY = '\033[90m'


def colorize(text: str, color: str, enabled: bool = True) -> str:
    if not enabled:
        return text
    return f"{color}{text}{Color.RESET}"


# ============================================================================
# Arguments
# ============================================================================

def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='automate-install',
        description='Install and start the AutoMate local stack (AutoChat, AutoHub, AutoMem).',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  automate-install --check-only              # Show the system checklist and exit
  automate-install --install-deps -y         # Install missing tools, then install AutoMate
  automate-install --skip-anthropic --skip-openai
        """,
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    mode = parser.add_argument_group('mode')
    mode.add_argument('--check-only', action='store_true',
                      help='Run the capability checks and exit')
    mode.add_argument('--install-deps', action='store_true',
                      help='Install missing required tools with the system package manager')
    mode.add_argument('--force', action='store_true',
                      help='Continue even if required checks fail')

    install = parser.add_argument_group('installation')
    install.add_argument('--install-path', type=Path, default=None,
                         help='Install directory (default: ~/AutoMate, or AUTOMATE_INSTALL_PATH)')
    install.add_argument('--anthropic-key', default=None,
                         help='Anthropic API key (default: $ANTHROPIC_API_KEY)')
    install.add_argument('--openai-key', default=None,
                         help='OpenAI API key (default: $OPENAI_API_KEY)')
    install.add_argument('--skip-anthropic', action='store_true',
                         help='Leave ANTHROPIC_API_KEY as a commented placeholder')
    install.add_argument('--skip-openai', action='store_true',
                         help='Leave OPENAI_API_KEY as a commented placeholder')
    install.add_argument('--validate-keys', action='store_true',
                         help='Check API keys against the provider APIs before installing')

    output = parser.add_argument_group('output')
    output.add_argument('-y', '--yes', action='store_true',
                        help='Skip confirmation prompts')
    output.add_argument('--no-color', action='store_true',
                        help='Disable colored output')
    output.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')

    return parser


def build_install_config(args: argparse.Namespace, settings: Settings) -> InstallConfig:
    """Translate CLI arguments (and the usual env vars) into an InstallConfig."""
    anthropic_key = SKIP if args.skip_anthropic else (
        args.anthropic_key or os.environ.get('ANTHROPIC_API_KEY')
    )
    openai_key = SKIP if args.skip_openai else (
        args.openai_key or os.environ.get('OPENAI_API_KEY')
    )
    install_path = args.install_path or settings.install_path
    return InstallConfig(
        install_path=Path(install_path).expanduser().resolve(),
        anthropic_key=anthropic_key,
        openai_key=openai_key,
    )


# ============================================================================
# Rendering
# ============================================================================

def print_banner(color_enabled: bool = True):
    print(colorize(f"\n  AutoMate Installer v{__version__}\n", Color.BOLD + Color.CYAN, color_enabled))


def print_checks(checks: Sequence[CapabilityCheck], color_enabled: bool = True):
    """Print a color-coded checklist."""
    print(f"\n{colorize('  System Check:', Color.BOLD, color_enabled)}\n")
    width = max(len(c.name) for c in checks) if checks else 0
    for check in checks:
        dots = '.' * (width + 4 - len(check.name))
        if check.passed:
            state = colorize('ok', Color.GREEN, color_enabled)
        elif check.required:
            state = colorize('MISSING', Color.RED, color_enabled)
        else:
            state = colorize('warning', Color.YELLOW, color_enabled)
        print(f"    {check.name} {dots} {state}  {check.message}")
    print()


def failed_required(checks: Sequence[CapabilityCheck]) -> List[CapabilityCheck]:
    return [c for c in checks if c.required and not c.passed]


class ProgressPrinter:
    """Renders ProgressEvents as a running log of steps."""

    def __init__(self, color_enabled: bool = True):
        self.color_enabled = color_enabled
        self._shown = 0

    def __call__(self, event: ProgressEvent) -> None:
        for name in event.completed_step_names[self._shown:]:
            print(f"  {colorize('✓', Color.GREEN, self.color_enabled)} {name}")
        self._shown = len(event.completed_step_names)

        if event.percent == 100 and len(event.completed_step_names) >= event.step_index:
            print(colorize(f"\n  [100%] {event.message}", Color.GREEN + Color.BOLD, self.color_enabled))
        else:
            print(colorize(f"  [{event.percent:>3}%] {event.message}...", Color.GRAY, self.color_enabled), flush=True)


def print_ready_banner(settings: Settings, config: InstallConfig, color_enabled: bool = True):
    print(f"""
{colorize('  AutoMate is running', Color.GREEN + Color.BOLD, color_enabled)}

    AutoChat:  http://localhost:{settings.autochat_port}
    AutoHub:   http://localhost:{settings.autohub_port}
    AutoMem:   http://localhost:{settings.automem_port}

    Installed in {config.install_path}
    Service logs in {config.install_path / 'logs'}
""")


def confirm(prompt: str, yes: bool = False) -> bool:
    """Ask for confirmation; auto-confirms with --yes or without a TTY."""
    if yes or not sys.stdin.isatty():
        return True
    try:
        answer = input(f"{prompt} [Y/n] ").strip().lower()
        return answer in ('', 'y', 'yes')
    except (EOFError, KeyboardInterrupt):
        return False


# ============================================================================
# Main
# ============================================================================

async def run_installer(args: argparse.Namespace, settings: Settings) -> int:
    color = not args.no_color and sys.stdout.isatty()
    print_banner(color)

    try:
        config = build_install_config(args, settings)
    except ValidationError as e:
        print(colorize(f"Invalid configuration: {e}", Color.RED, color))
        return EXIT_FAILURE

    prober = CapabilityProber(settings, install_path=config.install_path)
    checks = await prober.probe()
    print_checks(checks, color)
    missing = failed_required(checks)

    if args.check_only:
        return EXIT_OK if not missing else EXIT_FAILURE

    if missing and args.install_deps:
        names = ', '.join(c.name for c in missing)
        if not confirm(f"Install missing tools ({names})?", args.yes):
            print(colorize('  Aborted by user.', Color.YELLOW, color))
            return EXIT_FAILURE
        try:
            installed = await DependencyInstaller(settings, prober=prober).install()
        except DependencyInstallFailure as e:
            print(colorize(f"Dependency installation failed: {e}", Color.RED, color))
            return EXIT_FAILURE
        if installed:
            print(colorize(f"  Installed: {', '.join(installed)}", Color.GREEN, color))
        checks = await prober.probe()
        print_checks(checks, color)
        missing = failed_required(checks)

    if missing and not args.force:
        print(colorize(
            f"Missing requirements: {', '.join(c.name for c in missing)}\n"
            "    Fix: re-run with --install-deps, or --force to continue anyway",
            Color.RED, color,
        ))
        return EXIT_FAILURE

    if args.validate_keys:
        for provider, enabled, key in (
            ('anthropic', config.anthropic_enabled, config.anthropic_key),
            ('openai', config.openai_enabled, config.openai_key),
        ):
            if enabled and not await validate_api_key(provider, key or ''):
                print(colorize(f"The {provider} API key was rejected.", Color.RED, color))
                return EXIT_FAILURE

    if not confirm(f"Install AutoMate into {config.install_path}?", args.yes):
        print(colorize('  Aborted by user.', Color.YELLOW, color))
        return EXIT_FAILURE

    orchestrator = InstallOrchestrator(settings)
    try:
        await orchestrator.run(config, on_progress=ProgressPrinter(color))
    except StepFailure as e:
        print(colorize(f"\nInstallation failed: {e}", Color.RED, color))
        return EXIT_FAILURE

    print_ready_banner(settings, config, color)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    settings = default_settings
    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(run_installer(args, settings))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return EXIT_INTERRUPTED
