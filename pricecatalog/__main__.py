# pricecatalog/__main__.py

import sys
from pricecatalog.cli import main

sys.exit(main())
