import sys

from dazzle.cli import main

sys.exit(main())
