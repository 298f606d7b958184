# /run.py

import sys

from pricecatalog.cli import main

if __name__ == "__main__":
  sys.exit(main())
