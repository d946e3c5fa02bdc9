import sys

from calindex.cli import main

sys.exit(main())
