import sys

from dexroute.cli import main

sys.exit(main())
