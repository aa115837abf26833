import sys

from deployment_exporter.main import main

sys.exit(main())
