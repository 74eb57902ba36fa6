import sys

from chainsweep.cli import main

sys.exit(main())
