"""
ValoCoach CLI Entry Point

Allows running the package as a module: python -m valocoach
"""

from valocoach.cli import main

if __name__ == "__main__":
    main()
