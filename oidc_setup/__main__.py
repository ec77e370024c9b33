import sys

from oidc_setup.cli import main

sys.exit(main())
