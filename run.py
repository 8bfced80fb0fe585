#!/usr/bin/env python3
"""
AutoMate - Local Stack Installer

Checks the host, optionally installs missing tools, then installs and
starts AutoChat, AutoHub and AutoMem (with FalkorDB and Qdrant).

Usage:
    python run.py                              # Check, confirm, install
    python run.py --check-only                 # Run checks without installing
    python run.py --install-deps -y            # Install missing tools first, no prompts
    python run.py --install-path ~/stack       # Custom install directory
    python run.py --skip-anthropic --skip-openai

Environment Variables:
    - ANTHROPIC_API_KEY / OPENAI_API_KEY: used when no key flag is given
    - AUTOMATE_*: override any installer setting (e.g. AUTOMATE_READINESS_TIMEOUT=60)

Why sudo? (Linux only):
    --install-deps on Linux installs system packages through apt-get, dnf
    or pacman and will prompt for your sudo password. On macOS Homebrew is
    used, on Windows Chocolatey. Without --install-deps, sudo is never
    invoked. When running as root, sudo is skipped automatically.
"""

import sys

from automate_installer.cli import main

if __name__ == "__main__":
    sys.exit(main())
