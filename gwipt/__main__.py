import sys

from gwipt.cli import main

sys.exit(main())
