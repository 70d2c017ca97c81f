import sys

from squisher.cli import main

sys.exit(main())
