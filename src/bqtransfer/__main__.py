import sys

from bqtransfer.presentation.cli import main

sys.exit(main())
