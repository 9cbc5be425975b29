import sys

from taskflow.main import main

sys.exit(main())
