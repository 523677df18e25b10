import sys

from custody.workers.cli import main

sys.exit(main())
