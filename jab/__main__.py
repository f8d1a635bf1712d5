import sys

from jab.cli import main

sys.exit(main())
