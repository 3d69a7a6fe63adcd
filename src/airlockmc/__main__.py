"""Entry point: python -m airlockmc"""
import sys
from airlockmc.cli import main


if __name__ == "__main__":
    sys.exit(main())
