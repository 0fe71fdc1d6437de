import sys

from etl_batch.cli import main

sys.exit(main())
