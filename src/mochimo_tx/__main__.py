"""Entry point for running as module: python -m mochimo_tx"""

# Load .env file before importing anything else
from dotenv import load_dotenv
load_dotenv()

import sys

from mochimo_tx.cli import main

if __name__ == "__main__":
    sys.exit(main())
